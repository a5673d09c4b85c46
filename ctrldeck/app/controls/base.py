from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_VOLUME = 50
DEFAULT_MUTED = False


class MediaCommand(StrEnum):
    PLAY_PAUSE = "play_pause"
    NEXT = "next"
    PREVIOUS = "previous"


T = TypeVar("T")


class ControlError(RuntimeError):
    """Raised when a native control surface rejects a read or write."""


def clamp_percent(value: int | float) -> int:
    return max(0, min(100, int(value)))


class ControlAdapter(ABC):
    """Volume, microphone and brightness control for one operating system.

    Subclasses implement the ``_read_*``/``_write_*`` primitives against their
    native mechanism and raise ``ControlError`` on failure. The public methods
    clamp inputs and give reads a single fallback plus a default, so metrics
    never fail on a transient control-surface error. Writes propagate.
    """

    name = "base"

    # Output device
    @abstractmethod
    def _read_volume(self) -> int: ...

    @abstractmethod
    def _read_volume_fallback(self) -> int: ...

    @abstractmethod
    def _write_volume(self, level: int) -> None: ...

    @abstractmethod
    def _read_muted(self) -> bool: ...

    @abstractmethod
    def _read_muted_fallback(self) -> bool: ...

    @abstractmethod
    def _write_toggle_mute(self) -> None: ...

    # Input device
    @abstractmethod
    def _read_mic_volume(self) -> int: ...

    @abstractmethod
    def _read_mic_volume_fallback(self) -> int: ...

    @abstractmethod
    def _write_mic_volume(self, level: int) -> None: ...

    @abstractmethod
    def _read_mic_muted(self) -> bool: ...

    @abstractmethod
    def _read_mic_muted_fallback(self) -> bool: ...

    @abstractmethod
    def _write_mic_muted(self, muted: bool | None) -> None:
        """Set the capture mute state, or toggle it when ``muted`` is None."""

    # Display
    @abstractmethod
    def _read_brightness(self) -> int: ...

    @abstractmethod
    def _read_brightness_fallback(self) -> int: ...

    @abstractmethod
    def _write_brightness(self, percent: int) -> None: ...

    # Media
    @abstractmethod
    def _write_media(self, command: MediaCommand) -> None:
        """Send one transport command to the active media player."""

    def _read_with_fallback(
        self,
        label: str,
        primary: Callable[[], T],
        fallback: Callable[[], T],
        default: T,
    ) -> T:
        try:
            return primary()
        except ControlError as exc:
            logger.debug("%s read failed on %s, trying fallback: %s", label, self.name, exc)
        try:
            return fallback()
        except ControlError as exc:
            logger.debug("%s fallback read failed on %s: %s", label, self.name, exc)
        return default

    # Output device
    def get_volume(self) -> int:
        level = self._read_with_fallback("volume", self._read_volume, self._read_volume_fallback, DEFAULT_VOLUME)
        return clamp_percent(level)

    def set_volume(self, level: int) -> None:
        self._write_volume(clamp_percent(level))

    def volume_up(self, step: int) -> None:
        self.set_volume(self._read_volume() + clamp_percent(step))

    def volume_down(self, step: int) -> None:
        self.set_volume(self._read_volume() - clamp_percent(step))

    def is_muted(self) -> bool:
        return self._read_with_fallback("mute", self._read_muted, self._read_muted_fallback, DEFAULT_MUTED)

    def toggle_mute(self) -> None:
        self._write_toggle_mute()

    # Input device
    def get_mic_volume(self) -> int:
        level = self._read_with_fallback(
            "mic volume", self._read_mic_volume, self._read_mic_volume_fallback, DEFAULT_VOLUME
        )
        return clamp_percent(level)

    def set_mic_volume(self, level: int) -> None:
        self._write_mic_volume(clamp_percent(level))

    def mic_volume_up(self, step: int) -> None:
        self.set_mic_volume(self._read_mic_volume() + clamp_percent(step))

    def mic_volume_down(self, step: int) -> None:
        self.set_mic_volume(self._read_mic_volume() - clamp_percent(step))

    def is_mic_muted(self) -> bool:
        return self._read_with_fallback(
            "mic mute", self._read_mic_muted, self._read_mic_muted_fallback, DEFAULT_MUTED
        )

    def toggle_mic_mute(self) -> None:
        self._write_mic_muted(None)

    def set_mic_muted(self, muted: bool) -> None:
        self._write_mic_muted(bool(muted))

    # Display
    def get_brightness(self) -> int | None:
        level = self._read_with_fallback(
            "brightness", self._read_brightness, self._read_brightness_fallback, None
        )
        return None if level is None else clamp_percent(level)

    def set_brightness(self, percent: int) -> None:
        self._write_brightness(clamp_percent(percent))

    # Media
    def media_play_pause(self) -> None:
        self._write_media(MediaCommand.PLAY_PAUSE)

    def media_next(self) -> None:
        self._write_media(MediaCommand.NEXT)

    def media_previous(self) -> None:
        self._write_media(MediaCommand.PREVIOUS)


class UnsupportedAdapter(ControlAdapter):
    """Adapter for systems without a native implementation."""

    def __init__(self, system: str) -> None:
        self.name = system or "unknown"

    def _unsupported(self, capability: str) -> ControlError:
        return ControlError(f"{capability} control is not supported on {self.name}")

    def _read_volume(self) -> int:
        raise self._unsupported("Volume")

    _read_volume_fallback = _read_volume

    def _write_volume(self, level: int) -> None:
        raise self._unsupported("Volume")

    def _read_muted(self) -> bool:
        raise self._unsupported("Volume")

    _read_muted_fallback = _read_muted

    def _write_toggle_mute(self) -> None:
        raise self._unsupported("Volume")

    def _read_mic_volume(self) -> int:
        raise self._unsupported("Microphone")

    _read_mic_volume_fallback = _read_mic_volume

    def _write_mic_volume(self, level: int) -> None:
        raise self._unsupported("Microphone")

    def _read_mic_muted(self) -> bool:
        raise self._unsupported("Microphone")

    _read_mic_muted_fallback = _read_mic_muted

    def _write_mic_muted(self, muted: bool | None) -> None:
        raise self._unsupported("Microphone")

    def _read_brightness(self) -> int:
        raise self._unsupported("Brightness")

    _read_brightness_fallback = _read_brightness

    def _write_brightness(self, percent: int) -> None:
        raise self._unsupported("Brightness")

    def _write_media(self, command: MediaCommand) -> None:
        raise self._unsupported("Media")
