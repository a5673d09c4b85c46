from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from ctrldeck.app.controls.base import ControlAdapter, ControlError, MediaCommand
from ctrldeck.app.controls.commands import run_command

logger = logging.getLogger(__name__)

BACKLIGHT_ROOT = Path("/sys/class/backlight")
PREFERRED_BACKLIGHTS = ("intel_backlight", "amdgpu_bl0", "amdgpu_bl1", "acpi_video0")

SINK = "@DEFAULT_SINK@"
SOURCE = "@DEFAULT_SOURCE@"

_PACTL_PERCENT = re.compile(r"/\s*(\d+)%")
_AMIXER_PERCENT = re.compile(r"\[(\d+)%\]")

PLAYERCTL_COMMANDS = {
    MediaCommand.PLAY_PAUSE: "play-pause",
    MediaCommand.NEXT: "next",
    MediaCommand.PREVIOUS: "previous",
}


def _parse_pactl_percent(output: str) -> int:
    # "Volume: front-left: 65536 / 100% / 0.00 dB,   front-right: ..."
    match = _PACTL_PERCENT.search(output)
    if not match:
        raise ControlError(f"Unexpected pactl output: {output.strip()[:80]}")
    return int(match.group(1))


def _parse_amixer_percent(output: str) -> int:
    match = _AMIXER_PERCENT.search(output)
    if not match:
        raise ControlError(f"Unexpected amixer output: {output.strip()[:80]}")
    return int(match.group(1))


def _parse_amixer_muted(output: str) -> bool:
    if "[off]" in output:
        return True
    if "[on]" in output:
        return False
    raise ControlError("amixer output has no switch state")


def _parse_pacmd_default_source_muted(output: str) -> bool:
    in_default = False
    for line in output.splitlines():
        if "* index:" in line:
            in_default = True
        elif "index:" in line and in_default:
            break
        if in_default and "muted:" in line:
            return "yes" in line
    raise ControlError("Default source not found in pacmd output")


def find_backlight(root: Path = BACKLIGHT_ROOT) -> Path | None:
    try:
        entries = sorted(root.iterdir())
    except OSError:
        return None
    if not entries:
        return None
    by_name = {entry.name: entry for entry in entries}
    for name in PREFERRED_BACKLIGHTS:
        if name in by_name:
            return by_name[name]
    return entries[0]


class LinuxAdapter(ControlAdapter):
    """PulseAudio (pactl) for audio and the sysfs backlight class for brightness."""

    name = "linux"

    def __init__(self, backlight_root: Path = BACKLIGHT_ROOT, brightnessctl: str | None = None) -> None:
        self._backlight = find_backlight(backlight_root)
        self._brightnessctl = brightnessctl if brightnessctl is not None else shutil.which("brightnessctl")
        self._max_brightness = self._read_max_brightness()
        if self._backlight:
            logger.info("Using backlight device %s", self._backlight)

    def _read_max_brightness(self) -> int:
        if not self._backlight:
            return 0
        try:
            return int((self._backlight / "max_brightness").read_text().strip())
        except (OSError, ValueError):
            return 0

    # Output device
    def _read_volume(self) -> int:
        return _parse_pactl_percent(run_command(["pactl", "get-sink-volume", SINK]))

    def _read_volume_fallback(self) -> int:
        return _parse_amixer_percent(run_command(["amixer", "get", "Master"]))

    def _write_volume(self, level: int) -> None:
        run_command(["pactl", "set-sink-volume", SINK, f"{level}%"])

    def _read_muted(self) -> bool:
        return "yes" in run_command(["pactl", "get-sink-mute", SINK])

    def _read_muted_fallback(self) -> bool:
        return _parse_amixer_muted(run_command(["amixer", "get", "Master"]))

    def _write_toggle_mute(self) -> None:
        run_command(["pactl", "set-sink-mute", SINK, "toggle"])

    # Input device
    def _read_mic_volume(self) -> int:
        return _parse_pactl_percent(run_command(["pactl", "get-source-volume", SOURCE]))

    def _read_mic_volume_fallback(self) -> int:
        return _parse_amixer_percent(run_command(["amixer", "get", "Capture"]))

    def _write_mic_volume(self, level: int) -> None:
        run_command(["pactl", "set-source-volume", SOURCE, f"{level}%"])

    def _read_mic_muted(self) -> bool:
        return "yes" in run_command(["pactl", "get-source-mute", SOURCE])

    def _read_mic_muted_fallback(self) -> bool:
        return _parse_pacmd_default_source_muted(run_command(["pacmd", "list-sources"]))

    def _write_mic_muted(self, muted: bool | None) -> None:
        if muted is None:
            state = "toggle"
        else:
            state = "1" if muted else "0"
        run_command(["pactl", "set-source-mute", SOURCE, state])

    # Display
    def _read_brightness(self) -> int:
        if not self._backlight or self._max_brightness <= 0:
            raise ControlError("No backlight device available")
        try:
            current = int((self._backlight / "brightness").read_text().strip())
        except (OSError, ValueError) as exc:
            raise ControlError(f"Cannot read {self._backlight / 'brightness'}: {exc}") from exc
        return current * 100 // self._max_brightness

    def _read_brightness_fallback(self) -> int:
        if not self._brightnessctl:
            raise ControlError("brightnessctl not installed")
        try:
            current = int(run_command([self._brightnessctl, "get"]).strip())
            maximum = int(run_command([self._brightnessctl, "max"]).strip())
        except ValueError as exc:
            raise ControlError(f"Unexpected brightnessctl output: {exc}") from exc
        if maximum <= 0:
            raise ControlError("brightnessctl reported no maximum brightness")
        return current * 100 // maximum

    def _write_brightness(self, percent: int) -> None:
        if self._brightnessctl:
            run_command([self._brightnessctl, "set", f"{percent}%"])
            return
        if not self._backlight or self._max_brightness <= 0:
            raise ControlError("cannot set brightness: no backlight device or brightnessctl available")
        value = percent * self._max_brightness // 100
        if value < 1 and percent > 0:
            value = 1
        try:
            (self._backlight / "brightness").write_text(str(value))
        except OSError as exc:
            raise ControlError(f"cannot set brightness: {exc}") from exc

    # Media
    def _write_media(self, command: MediaCommand) -> None:
        run_command(["playerctl", PLAYERCTL_COMMANDS[command]])
