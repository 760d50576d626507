from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv


PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_DIR.parent
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DATA_PATH = DATA_DIR / "chat.json"

# .env at the project root wins, otherwise python-dotenv searches upwards
ENV_PATH = PROJECT_ROOT / ".env"


@dataclass(slots=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: Tuple[str, ...] = ("*",)


@dataclass(slots=True)
class StorageConfig:
    data_path: Path = DEFAULT_DATA_PATH
    lock_timeout: float = 10.0
    lock_poll_interval: float = 0.05


@dataclass(slots=True)
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = "INFO"


def _get_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return float(default)
    try:
        return float(value)
    except ValueError:
        return float(default)


def _get_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return int(default)
    try:
        return int(value)
    except ValueError:
        return int(default)


def _split_origins(raw: str) -> Tuple[str, ...]:
    origins = tuple(item.strip() for item in raw.split(",") if item.strip())
    return origins or ("*",)


def load_environment() -> None:
    if ENV_PATH.exists():
        load_dotenv(ENV_PATH)
    else:
        load_dotenv()


def load_config() -> AppConfig:
    """Load configuration from environment variables."""
    load_environment()

    host = os.getenv("CHAT_BOARD_HOST", "0.0.0.0")
    # PORT is what most hosting platforms inject
    port = _get_int_env("CHAT_BOARD_PORT", _get_int_env("PORT", 3000))
    cors_origins = _split_origins(os.getenv("CHAT_BOARD_CORS_ORIGINS", "*"))

    data_path = Path(os.getenv("CHAT_BOARD_DATA_PATH", str(DEFAULT_DATA_PATH))).expanduser()
    lock_timeout = _get_float_env("CHAT_BOARD_LOCK_TIMEOUT", 10.0)
    log_level = os.getenv("CHAT_BOARD_LOG_LEVEL", "INFO").upper()

    return AppConfig(
        server=ServerConfig(host=host, port=port, cors_origins=cors_origins),
        storage=StorageConfig(data_path=data_path, lock_timeout=lock_timeout),
        log_level=log_level,
    )


__all__ = [
    "AppConfig",
    "DEFAULT_DATA_PATH",
    "PROJECT_ROOT",
    "ServerConfig",
    "StorageConfig",
    "load_config",
]
