from __future__ import annotations

import subprocess
import sys
from contextlib import contextmanager
from types import SimpleNamespace

import pytest

from conftest import FakeAdapter
from ctrldeck.app.controls import commands, factory, linux, windows
from ctrldeck.app.controls.base import ControlError, UnsupportedAdapter, clamp_percent
from ctrldeck.app.controls.windows import WindowsAdapter


@pytest.mark.parametrize(("value", "expected"), [(-20, 0), (0, 0), (55, 55), (100, 100), (250, 100)])
def test_clamp_percent(value, expected):
    assert clamp_percent(value) == expected


def test_set_volume_clamps_out_of_range_levels(fake_adapter):
    fake_adapter.set_volume(150)
    fake_adapter.set_volume(-5)

    assert fake_adapter.writes == [("volume", 100), ("volume", 0)]


def test_volume_up_never_exceeds_maximum():
    adapter = FakeAdapter(volume=95)

    adapter.volume_up(5)
    adapter.volume_up(5)

    assert adapter.get_volume() == 100


def test_volume_down_never_goes_below_zero():
    adapter = FakeAdapter(volume=3)

    adapter.volume_down(5)

    assert adapter.get_volume() == 0


def test_get_volume_uses_fallback_then_default(fake_adapter):
    fake_adapter.broken.add("volume")
    assert fake_adapter.get_volume() == 40

    fake_adapter.broken.add("volume-fallback")
    assert fake_adapter.get_volume() == 50
    assert fake_adapter.is_muted() is False


def test_brightness_read_defaults_to_none_when_unreadable():
    adapter = FakeAdapter(brightness=None)

    assert adapter.get_brightness() is None


def test_write_failures_propagate(fake_adapter):
    fake_adapter.broken.add("brightness")

    with pytest.raises(ControlError):
        fake_adapter.set_brightness(40)


def test_toggle_and_set_mic_mute(fake_adapter):
    fake_adapter.toggle_mic_mute()
    assert fake_adapter.is_mic_muted() is True

    fake_adapter.set_mic_muted(False)
    assert fake_adapter.is_mic_muted() is False

    fake_adapter.mic_volume_up(50)
    assert fake_adapter.get_mic_volume() == 100


def test_unsupported_adapter_reads_default_and_writes_fail():
    adapter = UnsupportedAdapter("Plan9")

    assert adapter.get_volume() == 50
    assert adapter.is_mic_muted() is False
    assert adapter.get_brightness() is None
    with pytest.raises(ControlError, match="Volume control is not supported on Plan9"):
        adapter.set_volume(10)


def test_factory_falls_back_to_unsupported_adapter():
    adapter = factory.create_adapter("Haiku")

    assert isinstance(adapter, UnsupportedAdapter)
    assert adapter.name == "Haiku"


def test_run_command_maps_failures_to_control_error(monkeypatch):
    def fake_run(args, **kwargs):
        return SimpleNamespace(returncode=1, stdout="", stderr="Connection refused\n")

    monkeypatch.setattr(commands.subprocess, "run", fake_run)

    with pytest.raises(ControlError, match="Connection refused"):
        commands.run_command(["pactl", "info"])


def test_run_command_reports_missing_binary(monkeypatch):
    def fake_run(args, **kwargs):
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(commands.subprocess, "run", fake_run)

    with pytest.raises(ControlError, match="pactl not found"):
        commands.run_command(["pactl", "info"])


def test_run_command_reports_timeout(monkeypatch):
    def fake_run(args, **kwargs):
        raise subprocess.TimeoutExpired(args, kwargs["timeout"])

    monkeypatch.setattr(commands.subprocess, "run", fake_run)

    with pytest.raises(ControlError, match="timed out"):
        commands.run_command(["amixer", "get", "Master"], timeout=1)


PACTL_VOLUME = "Volume: front-left: 42598 /  65% / -11.23 dB,   front-right: 42598 /  65% / -11.23 dB\n"
AMIXER_MASTER = "Simple mixer control 'Master',0\n  Mono: Playback 27 [42%] [-24.00dB] [off]\n"
PACMD_SOURCES = """2 source(s) available.
    index: 0
\tname: <alsa_output.monitor>
\tmuted: no
  * index: 1
\tname: <alsa_input.analog-stereo>
\tmuted: yes
"""


@pytest.fixture
def linux_adapter(tmp_path):
    return linux.LinuxAdapter(backlight_root=tmp_path / "missing", brightnessctl="")


def _command_table(monkeypatch, table):
    calls: list[list[str]] = []

    def fake_run_command(args, **kwargs):
        calls.append(list(args))
        key = " ".join(args)
        result = table.get(key)
        if isinstance(result, Exception):
            raise result
        if result is None:
            raise ControlError(f"unexpected command {key}")
        return result

    monkeypatch.setattr(linux, "run_command", fake_run_command)
    return calls


def test_linux_reads_volume_from_pactl(monkeypatch, linux_adapter):
    _command_table(monkeypatch, {"pactl get-sink-volume @DEFAULT_SINK@": PACTL_VOLUME})

    assert linux_adapter.get_volume() == 65


def test_linux_volume_falls_back_to_amixer(monkeypatch, linux_adapter):
    _command_table(
        monkeypatch,
        {
            "pactl get-sink-volume @DEFAULT_SINK@": ControlError("pactl not found"),
            "pactl get-sink-mute @DEFAULT_SINK@": ControlError("pactl not found"),
            "amixer get Master": AMIXER_MASTER,
        },
    )

    assert linux_adapter.get_volume() == 42
    assert linux_adapter.is_muted() is True


def test_linux_volume_defaults_when_every_source_fails(monkeypatch, linux_adapter):
    _command_table(monkeypatch, {})

    assert linux_adapter.get_volume() == 50


def test_linux_mic_mute_falls_back_to_pacmd_default_source(monkeypatch, linux_adapter):
    _command_table(
        monkeypatch,
        {
            "pactl get-source-mute @DEFAULT_SOURCE@": ControlError("pactl not found"),
            "pacmd list-sources": PACMD_SOURCES,
        },
    )

    assert linux_adapter.is_mic_muted() is True


def test_linux_toggle_and_set_mic_mute_commands(monkeypatch, linux_adapter):
    calls = _command_table(
        monkeypatch,
        {
            "pactl set-source-mute @DEFAULT_SOURCE@ toggle": "",
            "pactl set-source-mute @DEFAULT_SOURCE@ 1": "",
        },
    )

    linux_adapter.toggle_mic_mute()
    linux_adapter.set_mic_muted(True)

    assert calls == [
        ["pactl", "set-source-mute", "@DEFAULT_SOURCE@", "toggle"],
        ["pactl", "set-source-mute", "@DEFAULT_SOURCE@", "1"],
    ]


def test_linux_set_volume_sends_clamped_percentage(monkeypatch, linux_adapter):
    calls = _command_table(monkeypatch, {"pactl set-sink-volume @DEFAULT_SINK@ 100%": ""})

    linux_adapter.set_volume(180)

    assert calls == [["pactl", "set-sink-volume", "@DEFAULT_SINK@", "100%"]]


def _make_backlight(root, name, *, brightness, maximum):
    device = root / name
    device.mkdir(parents=True)
    (device / "brightness").write_text(f"{brightness}\n")
    (device / "max_brightness").write_text(f"{maximum}\n")
    return device


def test_find_backlight_prefers_known_devices(tmp_path):
    _make_backlight(tmp_path, "acpi_video1", brightness=1, maximum=10)
    preferred = _make_backlight(tmp_path, "intel_backlight", brightness=1, maximum=10)

    assert linux.find_backlight(tmp_path) == preferred


def test_find_backlight_uses_first_entry_otherwise(tmp_path):
    first = _make_backlight(tmp_path, "a_panel", brightness=1, maximum=10)
    _make_backlight(tmp_path, "b_panel", brightness=1, maximum=10)

    assert linux.find_backlight(tmp_path) == first
    assert linux.find_backlight(tmp_path / "absent") is None


def test_linux_brightness_via_sysfs(tmp_path):
    device = _make_backlight(tmp_path, "intel_backlight", brightness=600, maximum=1200)
    adapter = linux.LinuxAdapter(backlight_root=tmp_path, brightnessctl="")

    assert adapter.get_brightness() == 50

    adapter.set_brightness(1)
    assert (device / "brightness").read_text() == "12"

    adapter.set_brightness(0)
    assert (device / "brightness").read_text() == "0"


def test_linux_brightness_write_uses_brightnessctl_when_present(monkeypatch, tmp_path):
    calls = _command_table(monkeypatch, {"brightnessctl set 30%": ""})
    adapter = linux.LinuxAdapter(backlight_root=tmp_path, brightnessctl="brightnessctl")

    adapter.set_brightness(30)

    assert calls == [["brightnessctl", "set", "30%"]]


def test_linux_brightness_unavailable(monkeypatch, linux_adapter):
    _command_table(monkeypatch, {})

    assert linux_adapter.get_brightness() is None
    with pytest.raises(ControlError, match="cannot set brightness"):
        linux_adapter.set_brightness(50)


class FakeEndpoint:
    def __init__(self, level: float = 0.5, muted: int = 0) -> None:
        self.level = level
        self.muted = muted

    def GetMasterVolumeLevelScalar(self) -> float:
        return self.level

    def SetMasterVolumeLevelScalar(self, level: float, context) -> None:
        self.level = level

    def GetMute(self) -> int:
        return self.muted

    def SetMute(self, muted: int, context) -> None:
        self.muted = muted


def _endpoint_factory(endpoints, failing=()):
    @contextmanager
    def factory_(flow, role):
        if (flow, role) in failing:
            raise ControlError(f"{flow}/{role} unavailable")
        yield endpoints.setdefault((flow, role), FakeEndpoint())

    return factory_


def test_windows_volume_round_trip_through_endpoint():
    endpoints = {("eRender", "eConsole"): FakeEndpoint(level=0.3)}
    adapter = WindowsAdapter(endpoint_factory=_endpoint_factory(endpoints))

    assert adapter.get_volume() == 30
    adapter.set_volume(75)

    assert endpoints[("eRender", "eConsole")].level == pytest.approx(0.75)


def test_windows_reads_fall_back_to_communications_endpoint():
    endpoints = {("eCapture", "eCommunications"): FakeEndpoint(muted=1)}
    adapter = WindowsAdapter(
        endpoint_factory=_endpoint_factory(endpoints, failing={("eCapture", "eConsole")})
    )

    assert adapter.is_mic_muted() is True


def test_windows_toggle_mic_mute_flips_capture_endpoint():
    endpoints = {("eCapture", "eConsole"): FakeEndpoint(muted=0)}
    adapter = WindowsAdapter(endpoint_factory=_endpoint_factory(endpoints))

    adapter.toggle_mic_mute()

    assert endpoints[("eCapture", "eConsole")].muted == 1


def test_linux_media_commands_use_playerctl(monkeypatch, linux_adapter):
    calls = _command_table(
        monkeypatch,
        {"playerctl play-pause": "", "playerctl next": "", "playerctl previous": ""},
    )

    linux_adapter.media_play_pause()
    linux_adapter.media_next()
    linux_adapter.media_previous()

    assert calls == [["playerctl", "play-pause"], ["playerctl", "next"], ["playerctl", "previous"]]


def test_linux_media_failure_is_control_error(monkeypatch, linux_adapter):
    _command_table(monkeypatch, {"playerctl next": ControlError("No players found")})

    with pytest.raises(ControlError, match="No players found"):
        linux_adapter.media_next()


def test_windows_media_sends_virtual_keys():
    pressed: list[int] = []
    adapter = WindowsAdapter(endpoint_factory=_endpoint_factory({}), key_sender=pressed.append)

    adapter.media_play_pause()
    adapter.media_next()
    adapter.media_previous()

    assert pressed == [0xB3, 0xB0, 0xB1]


def test_windows_missing_wmi_becomes_control_error(monkeypatch):
    monkeypatch.setitem(sys.modules, "wmi", None)
    monkeypatch.setitem(sys.modules, "comtypes", None)
    adapter = WindowsAdapter(endpoint_factory=_endpoint_factory({}))

    with pytest.raises(ControlError, match="wmi is not available"):
        adapter.set_brightness(40)


def test_windows_missing_pycaw_becomes_control_error(monkeypatch):
    monkeypatch.setitem(sys.modules, "comtypes", None)
    monkeypatch.setitem(sys.modules, "pycaw.api.endpointvolume", None)

    with pytest.raises(ControlError, match="is not available"):
        with windows.audio_endpoint("eRender", "eConsole"):
            pass


def test_windows_reads_default_when_audio_stack_is_missing(monkeypatch):
    monkeypatch.setitem(sys.modules, "comtypes", None)

    adapter = WindowsAdapter()

    assert adapter.get_volume() == 50
    assert adapter.is_mic_muted() is False


def test_unsupported_adapter_rejects_media():
    with pytest.raises(ControlError, match="Media control is not supported on Plan9"):
        UnsupportedAdapter("Plan9").media_play_pause()


@pytest.mark.skipif(sys.platform == "win32", reason="user32 is present on Windows")
def test_send_media_key_without_user32_is_control_error():
    with pytest.raises(ControlError, match="user32"):
        windows.send_media_key(0xB3)
