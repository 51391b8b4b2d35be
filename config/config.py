from dataclasses import dataclass, field
import os
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root if present
load_dotenv()


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


def _parse_origins() -> list[str]:
    raw = _env("CORS_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass
class Config:
    HOST: str = field(default_factory=lambda: _env("HOST", "0.0.0.0"))
    PORT: int = field(default_factory=lambda: int(_env("PORT", "8080")))
    LOG_LEVEL: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))
    LOG_DIR: str = field(default_factory=lambda: _env("LOG_DIR", "logs"))

    DASHBOARD_HTML: str = field(default_factory=lambda: _env("DASHBOARD_HTML", "./mission-control.html"))
    INGEST_PATH: str = field(default_factory=lambda: _env("INGEST_PATH", "/telemetry"))
    WS_PATH: str = field(default_factory=lambda: _env("WS_PATH", "/"))
    GREETING: str = field(default_factory=lambda: _env("GREETING", "Connected to Mission Control Backend"))

    # seconds; 0 disables the per-observer send timeout
    SEND_TIMEOUT: float = field(default_factory=lambda: float(_env("SEND_TIMEOUT", "5")))

    CORS_ORIGINS: list[str] = field(default_factory=_parse_origins)


def load_config(env_file: Optional[str] = None) -> Config:
    """Rebuild a Config, optionally after loading an explicit env file over the current environment."""
    if env_file:
        load_dotenv(env_file, override=True)
    return Config()


# single shared config instance
config = Config()
