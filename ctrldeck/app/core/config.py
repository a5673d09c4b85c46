from functools import lru_cache
import json
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration loaded from environment variables or .env files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CTRLDECK_",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "CtrlDeck Server"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 8080
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".ctrldeck")

    # Metrics sampling and streaming
    metrics_interval_seconds: float = 1.0
    ws_max_pending_messages: int = 10
    ws_send_timeout_seconds: float = 5.0

    # Script execution
    script_timeout_seconds: float = 30.0
    script_output_limit_bytes: int = 65_536

    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _parse_origins(cls, value: List[str] | str) -> List[str]:
        if isinstance(value, list):
            return [origin.strip() for origin in value if isinstance(origin, str) and origin.strip()]
        if isinstance(value, str):
            stripped = value.strip()
            if stripped:
                if stripped.startswith("["):
                    try:
                        parsed = json.loads(stripped)
                    except json.JSONDecodeError:
                        parsed = None
                    else:
                        if isinstance(parsed, list):
                            return [
                                str(origin).strip()
                                for origin in parsed
                                if isinstance(origin, (str, int, float)) and str(origin).strip()
                            ]
                return [
                    origin.strip().strip('"').strip("'")
                    for origin in value.split(",")
                    if origin and origin.strip().strip('"').strip("'")
                ]
        return []

    @field_validator("config_dir", mode="before")
    @classmethod
    def _expand_config_dir(cls, value: str | Path | None) -> Path:
        if value is None or not str(value).strip():
            return Path.home() / ".ctrldeck"
        return Path(str(value).strip()).expanduser()

    @field_validator("metrics_interval_seconds", mode="before")
    @classmethod
    def _validate_interval(cls, value: float | str | None) -> float:
        if value in (None, ""):
            return 1.0
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            return 1.0
        return max(0.1, numeric)

    @field_validator("script_timeout_seconds", mode="before")
    @classmethod
    def _validate_script_timeout(cls, value: float | str | None) -> float:
        if value in (None, ""):
            return 30.0
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            return 30.0
        return max(1.0, numeric)

    @field_validator("script_output_limit_bytes", "ws_max_pending_messages", mode="before")
    @classmethod
    def _validate_positive_int(cls, value: int | str | None, info) -> int:
        default = cls.model_fields[info.field_name].default
        if value in (None, ""):
            return default
        try:
            numeric = int(value)
        except (TypeError, ValueError):
            return default
        return numeric if numeric > 0 else default

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str | None) -> str:
        if not value or not str(value).strip():
            return "INFO"
        return str(value).strip().upper()


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()


settings = get_settings()
