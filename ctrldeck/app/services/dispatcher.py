from __future__ import annotations

import asyncio
import logging
from typing import Callable, Mapping, Protocol, TypeVar

from ctrldeck.app.controls.base import ControlAdapter, ControlError, MediaCommand, clamp_percent
from ctrldeck.app.schemas import ActionKind, ActionResult, Button, Script
from ctrldeck.app.services.config_store import ConfigStoreError
from ctrldeck.app.services.launcher import LaunchError, Launcher
from ctrldeck.app.services.runner import ScriptResult, ScriptRunner

logger = logging.getLogger(__name__)

INLINE_SCRIPT_PREFIX = "inline:"
DEFAULT_STEP = 5
DEFAULT_LEVEL = 50

MEDIA_MESSAGES = {
    MediaCommand.PLAY_PAUSE: "Media play/pause toggled",
    MediaCommand.NEXT: "Skipped to next track",
    MediaCommand.PREVIOUS: "Skipped to previous track",
}

T = TypeVar("T")


class ScriptLookup(Protocol):
    def get_script(self, script_id: str) -> Script | None: ...


def int_param(data: Mapping[str, str], key: str, default: int) -> int:
    """Parse an integer action parameter, using ``default`` when missing or invalid."""
    value = data.get(key)
    if value is None:
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _script_response(result: ScriptResult) -> ActionResult:
    if result.ok:
        return ActionResult.ok(result.stdout or "Script completed")
    return ActionResult.fail(result.failure_text())


class ActionDispatcher:
    """Map a button definition to one OS operation and report a uniform result."""

    def __init__(
        self,
        adapter: ControlAdapter,
        runner: ScriptRunner,
        launcher: Launcher,
        store: ScriptLookup,
    ) -> None:
        self._adapter = adapter
        self._runner = runner
        self._launcher = launcher
        self._store = store

    async def dispatch(self, button: Button) -> ActionResult:
        try:
            kind = ActionKind(button.action_type)
        except ValueError:
            return ActionResult.fail(f"Unknown action type: {button.action_type}")

        data = button.action_data
        logger.info("Executing %s for button %s", kind, button.id)
        try:
            if kind is ActionKind.MUTE_MIC:
                return await self._toggle_mic()
            if kind is ActionKind.VOLUME_UP:
                return await self._change_volume(self._adapter.volume_up, int_param(data, "step", DEFAULT_STEP))
            if kind is ActionKind.VOLUME_DOWN:
                return await self._change_volume(self._adapter.volume_down, int_param(data, "step", DEFAULT_STEP))
            if kind is ActionKind.SET_VOLUME:
                return await self.set_volume_level(int_param(data, "level", DEFAULT_LEVEL))
            if kind is ActionKind.VOLUME_MUTE:
                return await self._toggle_volume_mute()
            if kind is ActionKind.VOLUME_KNOB:
                return ActionResult.ok("Volume knob is interactive - use direct volume control")
            if kind is ActionKind.BRIGHTNESS_KNOB:
                return ActionResult.ok("Brightness knob is interactive - use direct brightness control")
            if kind is ActionKind.LAUNCH_APP:
                return await self._launch_app(data.get("app_path", ""))
            if kind is ActionKind.OPEN_URL:
                return await self._open_url(data.get("url", ""))
            if kind is ActionKind.RUN_SCRIPT:
                return await self.run_script(data.get("script_id", ""))
            if kind is ActionKind.MEDIA_PLAY_PAUSE:
                return await self.media_control(MediaCommand.PLAY_PAUSE)
            if kind is ActionKind.MEDIA_NEXT:
                return await self.media_control(MediaCommand.NEXT)
            if kind is ActionKind.MEDIA_PREV:
                return await self.media_control(MediaCommand.PREVIOUS)
        except (ControlError, LaunchError, ConfigStoreError) as exc:
            logger.warning("Action %s for button %s failed: %s", kind, button.id, exc)
            return ActionResult.fail(str(exc))
        return ActionResult.fail(f"Unknown action type: {button.action_type}")

    async def _call(self, func: Callable[..., T], *args) -> T:
        return await asyncio.to_thread(func, *args)

    async def _toggle_mic(self) -> ActionResult:
        await self._call(self._adapter.toggle_mic_mute)
        muted = await self._call(self._adapter.is_mic_muted)
        return ActionResult.ok("Microphone muted" if muted else "Microphone unmuted")

    async def _change_volume(self, operation: Callable[[int], None], step: int) -> ActionResult:
        await self._call(operation, step)
        level = await self._call(self._adapter.get_volume)
        return ActionResult.ok(f"Volume: {level}%")

    async def _toggle_volume_mute(self) -> ActionResult:
        await self._call(self._adapter.toggle_mute)
        muted = await self._call(self._adapter.is_muted)
        return ActionResult.ok("Volume muted" if muted else "Volume unmuted")

    async def set_volume_level(self, level: int) -> ActionResult:
        level = clamp_percent(level)
        try:
            await self._call(self._adapter.set_volume, level)
        except ControlError as exc:
            return ActionResult.fail(str(exc))
        return ActionResult.ok(f"Volume set to {level}%")

    async def set_brightness_level(self, level: int) -> ActionResult:
        level = clamp_percent(level)
        try:
            await self._call(self._adapter.set_brightness, level)
        except ControlError as exc:
            return ActionResult.fail(str(exc))
        return ActionResult.ok(f"Brightness set to {level}%")

    async def media_control(self, command: MediaCommand) -> ActionResult:
        operations = {
            MediaCommand.PLAY_PAUSE: self._adapter.media_play_pause,
            MediaCommand.NEXT: self._adapter.media_next,
            MediaCommand.PREVIOUS: self._adapter.media_previous,
        }
        try:
            await self._call(operations[command])
        except ControlError as exc:
            return ActionResult.fail(str(exc))
        return ActionResult.ok(MEDIA_MESSAGES[command])

    async def _launch_app(self, app_path: str) -> ActionResult:
        if not app_path:
            return ActionResult.fail("App path is required")
        await self._call(self._launcher.launch, app_path)
        return ActionResult.ok("Application launched")

    async def _open_url(self, url: str) -> ActionResult:
        if not url:
            return ActionResult.fail("URL is required")
        await self._call(self._launcher.open_url, url)
        return ActionResult.ok("URL opened")

    async def run_script(self, script_id: str) -> ActionResult:
        if not script_id:
            return ActionResult.fail("Script ID is required")

        if script_id.startswith(INLINE_SCRIPT_PREFIX):
            command = script_id[len(INLINE_SCRIPT_PREFIX):]
            return _script_response(await self._runner.run_inline(command))

        script = await self._call(self._store.get_script, script_id)
        if script is None:
            return ActionResult.fail("Script not found")
        return _script_response(await self._runner.run_path(script.path))
