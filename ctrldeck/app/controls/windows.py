"""Windows controls over the Core Audio COM endpoints, WMI and media keys.

pycaw, comtypes and wmi only install on Windows, so they are imported inside
the functions that open a COM apartment rather than at module load.
"""
from __future__ import annotations

import importlib
from contextlib import contextmanager
from types import ModuleType
from typing import Any, Callable, ContextManager, Iterator

from ctrldeck.app.controls.base import ControlAdapter, ControlError, MediaCommand
from ctrldeck.app.controls.commands import run_command

RENDER = "eRender"
CAPTURE = "eCapture"
CONSOLE = "eConsole"
COMMUNICATIONS = "eCommunications"

_POWERSHELL_BRIGHTNESS = (
    "(Get-CimInstance -Namespace root/WMI -ClassName WmiMonitorBrightness "
    "| Select-Object -First 1).CurrentBrightness"
)

# Virtual-key codes of the keyboard media keys.
MEDIA_KEYS = {
    MediaCommand.PLAY_PAUSE: 0xB3,
    MediaCommand.NEXT: 0xB0,
    MediaCommand.PREVIOUS: 0xB1,
}
KEYEVENTF_KEYUP = 0x0002

EndpointFactory = Callable[[str, str], ContextManager[Any]]
KeySender = Callable[[int], None]


def _require(module_name: str) -> ModuleType:
    try:
        return importlib.import_module(module_name)
    except ImportError as exc:
        raise ControlError(f"{module_name} is not available: {exc}") from exc


@contextmanager
def _com_apartment() -> Iterator[None]:
    comtypes = _require("comtypes")

    comtypes.CoInitialize()
    try:
        yield
    finally:
        comtypes.CoUninitialize()


@contextmanager
def audio_endpoint(flow: str, role: str) -> Iterator[Any]:
    """Yield the IAudioEndpointVolume of the default device for ``flow``/``role``."""
    from ctypes import POINTER, cast

    comtypes = _require("comtypes")
    IAudioEndpointVolume = _require("pycaw.api.endpointvolume").IAudioEndpointVolume
    IMMDeviceEnumerator = _require("pycaw.api.mmdeviceapi").IMMDeviceEnumerator
    constants = _require("pycaw.constants")

    with _com_apartment():
        enumerator = device = interface = endpoint = None
        try:
            enumerator = comtypes.CoCreateInstance(
                constants.CLSID_MMDeviceEnumerator,
                IMMDeviceEnumerator,
                comtypes.CLSCTX_INPROC_SERVER,
            )
            device = enumerator.GetDefaultAudioEndpoint(
                getattr(constants.EDataFlow, flow).value,
                getattr(constants.ERole, role).value,
            )
            interface = device.Activate(IAudioEndpointVolume._iid_, comtypes.CLSCTX_ALL, None)
            endpoint = cast(interface, POINTER(IAudioEndpointVolume))
            yield endpoint
        except (OSError, comtypes.COMError) as exc:
            raise ControlError(f"Audio endpoint ({flow}/{role}) failed: {exc}") from exc
        finally:
            # COM pointers must be released before the apartment is torn down.
            del endpoint, interface, device, enumerator


def send_media_key(virtual_key: int) -> None:
    """Press and release one media key through user32."""
    import ctypes

    try:
        user32 = ctypes.windll.user32
    except AttributeError as exc:
        raise ControlError("media keys need the Windows user32 API") from exc
    user32.keybd_event(virtual_key, 0, 0, 0)
    user32.keybd_event(virtual_key, 0, KEYEVENTF_KEYUP, 0)


class WindowsAdapter(ControlAdapter):
    """Core Audio endpoints for volume and mic, WMI for laptop panel brightness."""

    name = "windows"

    def __init__(
        self,
        endpoint_factory: EndpointFactory = audio_endpoint,
        key_sender: KeySender = send_media_key,
    ) -> None:
        self._endpoint = endpoint_factory
        self._send_key = key_sender

    def _get_level(self, flow: str, role: str) -> int:
        with self._endpoint(flow, role) as endpoint:
            return round(endpoint.GetMasterVolumeLevelScalar() * 100)

    def _set_level(self, flow: str, level: int) -> None:
        with self._endpoint(flow, CONSOLE) as endpoint:
            endpoint.SetMasterVolumeLevelScalar(level / 100.0, None)

    def _get_mute(self, flow: str, role: str) -> bool:
        with self._endpoint(flow, role) as endpoint:
            return bool(endpoint.GetMute())

    def _set_mute(self, flow: str, muted: bool | None) -> None:
        with self._endpoint(flow, CONSOLE) as endpoint:
            if muted is None:
                muted = not bool(endpoint.GetMute())
            endpoint.SetMute(int(muted), None)

    # Output device
    def _read_volume(self) -> int:
        return self._get_level(RENDER, CONSOLE)

    def _read_volume_fallback(self) -> int:
        return self._get_level(RENDER, COMMUNICATIONS)

    def _write_volume(self, level: int) -> None:
        self._set_level(RENDER, level)

    def _read_muted(self) -> bool:
        return self._get_mute(RENDER, CONSOLE)

    def _read_muted_fallback(self) -> bool:
        return self._get_mute(RENDER, COMMUNICATIONS)

    def _write_toggle_mute(self) -> None:
        self._set_mute(RENDER, None)

    # Input device
    def _read_mic_volume(self) -> int:
        return self._get_level(CAPTURE, CONSOLE)

    def _read_mic_volume_fallback(self) -> int:
        return self._get_level(CAPTURE, COMMUNICATIONS)

    def _write_mic_volume(self, level: int) -> None:
        self._set_level(CAPTURE, level)

    def _read_mic_muted(self) -> bool:
        return self._get_mute(CAPTURE, CONSOLE)

    def _read_mic_muted_fallback(self) -> bool:
        return self._get_mute(CAPTURE, COMMUNICATIONS)

    def _write_mic_muted(self, muted: bool | None) -> None:
        self._set_mute(CAPTURE, muted)

    # Display
    def _read_brightness(self) -> int:
        wmi = _require("wmi")

        with _com_apartment():
            try:
                monitors = wmi.WMI(namespace="wmi").WmiMonitorBrightness()
                if not monitors:
                    raise ControlError("No WMI brightness data")
                return int(monitors[0].CurrentBrightness)
            except wmi.x_wmi as exc:
                raise ControlError(f"WMI brightness query failed: {exc}") from exc

    def _read_brightness_fallback(self) -> int:
        output = run_command(["powershell", "-NoProfile", "-Command", _POWERSHELL_BRIGHTNESS]).strip()
        try:
            return int(output)
        except ValueError as exc:
            raise ControlError(f"Unexpected brightness output: {output[:80]!r}") from exc

    def _write_brightness(self, percent: int) -> None:
        wmi = _require("wmi")

        with _com_apartment():
            try:
                methods = wmi.WMI(namespace="wmi").WmiMonitorBrightnessMethods()
                if not methods:
                    raise ControlError("brightness control not supported on this system")
                methods[0].WmiSetBrightness(Brightness=percent, Timeout=0)
            except wmi.x_wmi as exc:
                raise ControlError(f"failed to set brightness: {exc}") from exc

    # Media
    def _write_media(self, command: MediaCommand) -> None:
        self._send_key(MEDIA_KEYS[command])
