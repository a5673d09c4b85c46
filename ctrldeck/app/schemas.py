from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MetricsSnapshot(BaseModel):
    """One complete sample of host telemetry. Never mutated after publication."""

    model_config = ConfigDict(frozen=True)

    cpu_usage: float = Field(0.0, ge=0, le=100)
    ram_usage: float = Field(0.0, ge=0, le=100)
    ram_total: int = Field(0, ge=0)
    ram_used: int = Field(0, ge=0)
    battery_level: int | None = Field(None, ge=0, le=100)
    is_charging: bool = False
    cpu_temp: float | None = None
    mic_muted: bool = False
    volume_level: int = Field(0, ge=0, le=100)
    volume_muted: bool = False
    brightness_level: int | None = Field(None, ge=0, le=100)
    network_upload: float = Field(0.0, ge=0, description="bytes per second")
    network_download: float = Field(0.0, ge=0, description="bytes per second")
    timestamp: int = 0

    @classmethod
    def empty(cls) -> MetricsSnapshot:
        return cls()


class MetricsEnvelope(BaseModel):
    type: Literal["metrics"] = "metrics"
    data: MetricsSnapshot


class ActionKind(StrEnum):
    MUTE_MIC = "mute_mic"
    VOLUME_UP = "volume_up"
    VOLUME_DOWN = "volume_down"
    SET_VOLUME = "set_volume"
    VOLUME_MUTE = "volume_mute"
    VOLUME_KNOB = "volume_knob"
    BRIGHTNESS_KNOB = "brightness_knob"
    LAUNCH_APP = "launch_app"
    RUN_SCRIPT = "run_script"
    OPEN_URL = "open_url"
    MEDIA_PLAY_PAUSE = "media_play_pause"
    MEDIA_NEXT = "media_next"
    MEDIA_PREV = "media_prev"


class Button(BaseModel):
    id: str
    name: str = ""
    icon: str = ""
    # Kept as a plain string so buttons with unknown kinds still load.
    action_type: str
    action_data: dict[str, str] = Field(default_factory=dict)
    position: int = 0
    color: str | None = None

    @field_validator("action_data", mode="before")
    @classmethod
    def _stringify_values(cls, value: Any) -> dict[str, str]:
        if not isinstance(value, dict):
            return {}
        return {str(key): "" if item is None else str(item) for key, item in value.items()}


class Script(BaseModel):
    id: str
    name: str = ""
    path: str
    description: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Widget(BaseModel):
    id: str
    type: str
    position: int = 0
    settings: dict[str, str] | None = None
    enabled: bool = True


class ActionResult(BaseModel):
    success: bool
    message: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, message: str | None = None) -> ActionResult:
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, error: str) -> ActionResult:
        return cls(success=False, error=error)


class LevelRequest(BaseModel):
    level: int


class MediaRequest(BaseModel):
    # "play_pause", "next" or "prev"; anything else is rejected by the route.
    action: str


class ServerInfo(BaseModel):
    ip_addresses: list[str]
    port: str
    hostname: str | None = None
