"""
Settings for the correlator, read from the environment.

A .env file in the working directory is loaded first, without overriding
variables that are already set.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from .errors import ValidationError

ENV_DB_PATH = "DEPLOYTRACE_DB_PATH"
ENV_PARTITION_KEY = "DEPLOYTRACE_PARTITION_KEY"
ENV_LOG_LEVEL = "DEPLOYTRACE_LOG_LEVEL"
ENV_LOG_DIR = "DEPLOYTRACE_LOG_DIR"

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class TrackerConfig:
    db_path: Path
    partition_key: str
    log_level: str = "INFO"
    log_dir: Path = Path("logs")


def load_env(env_path: Optional[Path] = None) -> bool:
    """Load .env from the working directory if present.

    Returns True when a file was found and loaded.
    """
    env_path = env_path or Path.cwd() / ".env"
    if not env_path.exists():
        return False
    return load_dotenv(dotenv_path=env_path, override=False)


def load_config(environ: Optional[Mapping[str, str]] = None, env_path: Optional[Path] = None) -> TrackerConfig:
    """
    Build the tracker configuration.

    Args:
        environ: Mapping to read from (default: os.environ after loading .env)
        env_path: Explicit .env location, only used when environ is None

    Raises:
        ValidationError: listing every missing or invalid setting
    """
    if environ is None:
        load_env(env_path)
        environ = os.environ

    missing: List[str] = []
    db_path = environ.get(ENV_DB_PATH, "").strip()
    partition_key = environ.get(ENV_PARTITION_KEY, "").strip()
    if not db_path:
        missing.append(ENV_DB_PATH)
    if not partition_key:
        missing.append(ENV_PARTITION_KEY)

    log_level = environ.get(ENV_LOG_LEVEL, "INFO").strip().upper() or "INFO"
    if log_level not in LOG_LEVELS:
        missing.append(f"{ENV_LOG_LEVEL} (got {log_level!r})")

    if missing:
        raise ValidationError([f"Missing or invalid setting: {m}" for m in missing])

    return TrackerConfig(
        db_path=Path(db_path),
        partition_key=partition_key,
        log_level=log_level,
        log_dir=Path(environ.get(ENV_LOG_DIR, "").strip() or "logs"),
    )
