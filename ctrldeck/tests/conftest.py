from __future__ import annotations

import json
from pathlib import Path

import pytest

from ctrldeck.app.controls.base import ControlAdapter, ControlError, MediaCommand


class FakeAdapter(ControlAdapter):
    """In-memory control surface; set ``broken`` to make every primitive fail."""

    name = "fake"

    def __init__(self, *, volume: int = 40, mic_muted: bool = False, brightness: int | None = 70) -> None:
        self.volume = volume
        self.muted = False
        self.mic_volume = 60
        self.mic_muted = mic_muted
        self.brightness = brightness
        self.broken: set[str] = set()
        self.writes: list[tuple[str, object]] = []

    def _check(self, capability: str) -> None:
        if capability in self.broken:
            raise ControlError(f"{capability} unavailable")

    def _read_volume(self) -> int:
        self._check("volume")
        return self.volume

    def _read_volume_fallback(self) -> int:
        self._check("volume-fallback")
        return self.volume

    def _write_volume(self, level: int) -> None:
        self._check("volume")
        self.writes.append(("volume", level))
        self.volume = level

    def _read_muted(self) -> bool:
        self._check("volume")
        return self.muted

    def _read_muted_fallback(self) -> bool:
        self._check("volume-fallback")
        return self.muted

    def _write_toggle_mute(self) -> None:
        self._check("volume")
        self.muted = not self.muted

    def _read_mic_volume(self) -> int:
        self._check("mic")
        return self.mic_volume

    def _read_mic_volume_fallback(self) -> int:
        self._check("mic-fallback")
        return self.mic_volume

    def _write_mic_volume(self, level: int) -> None:
        self._check("mic")
        self.mic_volume = level

    def _read_mic_muted(self) -> bool:
        self._check("mic")
        return self.mic_muted

    def _read_mic_muted_fallback(self) -> bool:
        self._check("mic-fallback")
        return self.mic_muted

    def _write_mic_muted(self, muted: bool | None) -> None:
        self._check("mic")
        self.mic_muted = (not self.mic_muted) if muted is None else muted

    def _read_brightness(self) -> int:
        self._check("brightness")
        if self.brightness is None:
            raise ControlError("no backlight")
        return self.brightness

    def _read_brightness_fallback(self) -> int:
        self._check("brightness-fallback")
        if self.brightness is None:
            raise ControlError("no brightnessctl")
        return self.brightness

    def _write_brightness(self, percent: int) -> None:
        self._check("brightness")
        self.writes.append(("brightness", percent))
        self.brightness = percent

    def _write_media(self, command: MediaCommand) -> None:
        self._check("media")
        self.writes.append(("media", command))


class FakeLauncher:
    def __init__(self) -> None:
        self.launched: list[str] = []
        self.opened: list[str] = []

    def launch(self, app_path: str) -> None:
        self.launched.append(app_path)

    def open_url(self, url: str) -> None:
        self.opened.append(url)


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def fake_launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "ctrldeck"
    directory.mkdir()
    return directory


def write_config(directory: Path, filename: str, payload: object) -> None:
    (directory / filename).write_text(json.dumps(payload))
