"""Config management for newtab.

Reads `config.ini` from the data directory (beside main.py by default).
When running as PyInstaller onefile, PROJECT_ROOT is the directory containing the executable.
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
import sys
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)


def _get_project_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path(__file__).resolve().parents[1]


PROJECT_ROOT = _get_project_root()

# DATA_DIR holds all persistent state (config.ini, newtab.sqlite, newtab.log)
# unless config.ini points the database or log file elsewhere.
# Set via env var for Docker; defaults to PROJECT_ROOT for standalone use.
DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"
DEFAULT_DB_NAME = "newtab.sqlite"
DEFAULT_LOG_NAME = "newtab.log"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_USER_AGENT = "newtab/1.0 (+https://example)"
DEFAULT_FALLBACK_ICON = "/static/earth.svg"


@dataclasses.dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8080


@dataclasses.dataclass
class DatabaseConfig:
    """Location of the SQLite file and an optional file to seed it from."""

    path: Optional[pathlib.Path] = None
    seed: Optional[pathlib.Path] = None


@dataclasses.dataclass
class FaviconConfig:
    timeout: float = 1.5
    max_bytes: int = 512 * 1024
    user_agent: str = DEFAULT_USER_AGENT
    fallback: str = DEFAULT_FALLBACK_ICON
    resolve_on_render: bool = True


@dataclasses.dataclass
class LoggingConfig:
    """Console level, log file location and uvicorn access logging."""

    level: str = "INFO"
    file: Optional[pathlib.Path] = None
    access_log: bool = False


@dataclasses.dataclass
class NewtabConfig:
    server: ServerConfig = dataclasses.field(default_factory=ServerConfig)
    database: DatabaseConfig = dataclasses.field(default_factory=DatabaseConfig)
    favicons: FaviconConfig = dataclasses.field(default_factory=FaviconConfig)
    logging: LoggingConfig = dataclasses.field(default_factory=LoggingConfig)

    @property
    def server_host(self) -> str:
        return self.server.host

    @property
    def server_port(self) -> int:
        return self.server.port

    @property
    def database_path(self) -> pathlib.Path:
        return self.database.path or DATA_DIR / DEFAULT_DB_NAME

    @property
    def log_file(self) -> pathlib.Path:
        return self.logging.file or DATA_DIR / DEFAULT_LOG_NAME


def _parse_bool(value: str, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _optional_path(value: str) -> Optional[pathlib.Path]:
    value = (value or "").strip()
    if not value:
        return None
    path = pathlib.Path(value).expanduser()
    if not path.is_absolute():
        path = DATA_DIR / path
    return path


def load_config(config_path: Optional[pathlib.Path] = None) -> NewtabConfig:
    """Load configuration from config.ini.

    Defaults to `config.ini` in the data directory. Relative database and
    log file paths are resolved against the data directory.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)

    server = ServerConfig(
        host=parser.get("server", "host", fallback="0.0.0.0"),
        port=parser.getint("server", "port", fallback=8080),
    )

    database = DatabaseConfig(
        path=_optional_path(parser.get("database", "path", fallback="")),
        seed=_optional_path(parser.get("database", "seed", fallback="")),
    )

    favicons = FaviconConfig(
        timeout=parser.getfloat("favicons", "timeout", fallback=1.5),
        max_bytes=parser.getint("favicons", "max_bytes", fallback=512 * 1024),
        user_agent=parser.get(
            "favicons", "user_agent", fallback=DEFAULT_USER_AGENT
        ).strip() or DEFAULT_USER_AGENT,
        fallback=parser.get(
            "favicons", "fallback", fallback=DEFAULT_FALLBACK_ICON
        ).strip() or DEFAULT_FALLBACK_ICON,
        resolve_on_render=_parse_bool(
            parser.get("favicons", "resolve_on_render", fallback="true"), True
        ),
    )

    if favicons.timeout <= 0:
        logger.warning(f"Invalid favicon timeout {favicons.timeout}, using 1.5s")
        favicons.timeout = 1.5

    log_settings = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO").strip().upper() or "INFO",
        file=_optional_path(parser.get("logging", "file", fallback="")),
        access_log=_parse_bool(parser.get("logging", "access_log", fallback="false"), False),
    )
    if log_settings.level not in LOG_LEVELS:
        logger.warning(f"Unknown log level {log_settings.level!r}, using INFO")
        log_settings.level = "INFO"

    return NewtabConfig(
        server=server, database=database, favicons=favicons, logging=log_settings
    )


def write_default_config(
    config_path: Optional[pathlib.Path] = None,
    *,
    host: str = "0.0.0.0",
    port: int = 8080,
    seed: Optional[pathlib.Path] = None,
) -> pathlib.Path:
    """Write a config.ini with default settings and return its path."""
    path = config_path or DEFAULT_CONFIG_PATH

    parser = configparser.ConfigParser()
    parser["server"] = {
        "host": host,
        "port": str(port),
    }
    parser["database"] = {
        "path": DEFAULT_DB_NAME,
        "seed": str(seed) if seed else "",
    }
    parser["favicons"] = {
        "timeout": "1.5",
        "max_bytes": str(512 * 1024),
        "user_agent": DEFAULT_USER_AGENT,
        "fallback": DEFAULT_FALLBACK_ICON,
        "resolve_on_render": "true",
    }
    parser["logging"] = {
        "level": "INFO",
        "file": DEFAULT_LOG_NAME,
        "access_log": "false",
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as handle:
        parser.write(handle)
    return path
