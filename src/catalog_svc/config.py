"""Service configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .auth.config import AuthConfig


def _known(cls, data: dict[str, Any] | None) -> dict[str, Any]:
    """Drop keys the dataclass does not declare."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in (data or {}).items() if k in names}


def _split_origins(value: str | list[str]) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    return [origin.strip() for origin in value if origin and origin.strip()]


@dataclass
class RealtimeConfig:
    """Real-time socket configuration."""
    enabled: bool = True
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    send_queue_size: int = 1000  # frames buffered per connection
    max_message_bytes: int = 64 * 1024

    def __post_init__(self) -> None:
        self.cors_origins = _split_origins(self.cors_origins) or ["*"]


@dataclass
class MediaConfig:
    """Media URL resolution."""
    base_url: str | None = None  # e.g., "https://cdn.example.com/media/"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass
class Config:
    """Main service configuration."""
    host: str = "0.0.0.0"
    port: int = 8060

    auth: AuthConfig = field(default_factory=AuthConfig)
    realtime: RealtimeConfig = field(default_factory=RealtimeConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create config from dictionary. Unknown keys are ignored."""
        data = data or {}
        return cls(
            host=data.get("host", "0.0.0.0"),
            port=int(data.get("port", 8060)),
            auth=AuthConfig.from_dict(data.get("auth") or {}),
            realtime=RealtimeConfig(**_known(RealtimeConfig, data.get("realtime"))),
            media=MediaConfig(**_known(MediaConfig, data.get("media"))),
            logging=LoggingConfig(**_known(LoggingConfig, data.get("logging"))),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> Config:
        """Load config from a YAML file."""
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    def apply_env(self, environ: dict[str, str] | None = None) -> Config:
        """Apply environment overrides (MEDIA_BASE_URL, SOCKET_CORS_ORIGIN)."""
        env = os.environ if environ is None else environ

        base_url = env.get("MEDIA_BASE_URL", "").strip()
        if base_url:
            self.media.base_url = base_url

        origins = _split_origins(env.get("SOCKET_CORS_ORIGIN", ""))
        if origins:
            self.realtime.cors_origins = origins

        return self
