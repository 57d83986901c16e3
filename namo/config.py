# namo/config.py
"""
Configuration for the namo shell.

Values are loaded from environment variables (and a project ``.env`` file)
and validated with Pydantic. Command-line flags only choose the connection;
everything that shapes the session itself lives here.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Optional

from pydantic import BeforeValidator, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode
import structlog


logger = structlog.get_logger(__name__)

# Resolve .env relative to the project root (one level above namo/ package),
# so the config works regardless of the user's current working directory.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _coerce_str_list(value: object) -> list[str]:
    """Coerce env-var values into a list of stripped, non-empty strings.

    Accepts:
      - A single str         → ["value"]
      - Comma-separated str  → ["a", "b"]
      - JSON array str       → ["a", "b"]
      - An existing list     → passthrough with str coercion
    """
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return []
        if stripped.startswith("["):
            return _coerce_str_list(json.loads(stripped))
        if "," in stripped:
            return [part.strip() for part in stripped.split(",") if part.strip()]
        return [stripped]
    return []


StrList = Annotated[list[str], NoDecode, BeforeValidator(_coerce_str_list)]


class NamoConfig(BaseSettings):
    """Session settings: prompt, input classification, engine and logging."""

    prompt: str = Field("namo> ", alias="NAMO_PROMPT")
    exit_keywords: StrList = Field(
        default_factory=lambda: ["exit", "quit"], alias="NAMO_EXIT_KEYWORDS"
    )
    comment_marker: str = Field("#", alias="NAMO_COMMENT_MARKER")
    engine: Optional[str] = Field(None, alias="NAMO_ENGINE")
    banner: bool = Field(True, alias="NAMO_BANNER")
    log_level: str = Field("WARNING", alias="NAMO_LOG_LEVEL")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"NAMO_LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @field_validator("engine")
    @classmethod
    def _blank_engine_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def _check_input_markers(self) -> "NamoConfig":
        if not self.prompt:
            raise ValueError("NAMO_PROMPT must not be empty")
        if not self.comment_marker.strip():
            raise ValueError("NAMO_COMMENT_MARKER must not be blank")
        self.comment_marker = self.comment_marker.strip()
        if not self.exit_keywords:
            logger.warning("config.no_exit_keywords")
        return self
