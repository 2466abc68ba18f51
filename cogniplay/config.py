"""
Runtime configuration.

Settings come from environment variables with per-user defaults:

    COGNIPLAY_DATA_DIR   storage directory for session files
    COGNIPLAY_LOG_LEVEL  logging level name (default INFO)
    COGNIPLAY_HOST       web API bind host (default 127.0.0.1)
    COGNIPLAY_PORT       web API port (default 5000)
    COGNIPLAY_DEBUG      '1'/'true' enables Flask debug mode
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

APP_NAME = "CogniPlay"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def app_data_dir() -> Path:
    if sys.platform.startswith("win"):
        base = os.getenv("APPDATA")
        if base:
            root = Path(base)
        else:
            root = Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support"
    else:
        root = Path.home() / ".local" / "share"
    primary = root / APP_NAME
    try:
        primary.mkdir(parents=True, exist_ok=True)
        return primary
    except OSError:
        fallback = Path.cwd() / "data" / "_appdata"
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            ValueError: If COGNIPLAY_PORT or COGNIPLAY_LOG_LEVEL is invalid
        """
        env = os.environ if environ is None else environ

        data_dir = env.get("COGNIPLAY_DATA_DIR")
        log_level = env.get("COGNIPLAY_LOG_LEVEL", "INFO").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"COGNIPLAY_LOG_LEVEL is not a logging level: {log_level}")

        port_raw = env.get("COGNIPLAY_PORT", "5000")
        try:
            port = int(port_raw)
        except ValueError:
            raise ValueError(f"COGNIPLAY_PORT must be an integer, got {port_raw!r}") from None
        if not 0 < port < 65536:
            raise ValueError(f"COGNIPLAY_PORT out of range: {port}")

        return cls(
            data_dir=Path(data_dir) if data_dir else app_data_dir(),
            log_level=log_level,
            host=env.get("COGNIPLAY_HOST", "127.0.0.1"),
            port=port,
            debug=env.get("COGNIPLAY_DEBUG", "").lower() in ("1", "true", "yes"),
        )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
