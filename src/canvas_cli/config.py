"""canvas_cli.config

Settings read from the environment (and a ``.env`` file, if present), plus
the package's logging setup.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator

from .credentials import DEFAULT_CONFIG_DIR

__all__ = ["Settings", "setup_logger"]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseModel):
    """Configuration options for the Canvas CLI."""

    domain: Optional[str] = Field(
        default=None,
        description="Canvas host, e.g. canvas.instructure.com (CANVAS_DOMAIN)",
    )
    token: Optional[str] = Field(
        default=None,
        description="Canvas API access token (CANVAS_API_TOKEN)",
    )
    config_dir: Path = Field(
        default=DEFAULT_CONFIG_DIR,
        description="Directory holding the saved credential (CANVAS_CLI_HOME)",
    )
    log_level: str = Field(
        default="WARNING",
        description="Logging level name (CANVAS_CLI_LOG_LEVEL)",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {v!r}")
        return level

    @field_validator("domain", "token")
    @classmethod
    def _blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def has_credentials(self) -> bool:
        return bool(self.domain and self.token)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        values = {
            "domain": os.getenv("CANVAS_DOMAIN"),
            "token": os.getenv("CANVAS_API_TOKEN"),
            "config_dir": os.getenv("CANVAS_CLI_HOME"),
            "log_level": os.getenv("CANVAS_CLI_LOG_LEVEL"),
        }
        return cls(**{k: v for k, v in values.items() if v is not None})


def setup_logger(level: str = "WARNING") -> logging.Logger:
    """Attach a stderr handler to the ``canvas_cli`` logger once."""
    logger = logging.getLogger("canvas_cli")
    logger.setLevel(level)
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(h)
        logger.propagate = False
    return logger
