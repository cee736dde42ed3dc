"""Pipeline settings loaded from the environment.

Values come from process environment variables, optionally seeded from a
`.env` file at the repo root:

    CRM_PIPELINE_SIMILARITY_THRESHOLD=0.8
    CRM_PIPELINE_SNAPSHOT_PATH=artifacts/store_snapshot.json
    CRM_PIPELINE_LOG_LEVEL=INFO
    CRM_PIPELINE_LOG_JSON=false
    CRM_PIPELINE_ALIAS_FILE=config/aliases.json
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


REPO_ROOT = Path(__file__).resolve().parents[1]
ENV_PREFIX = "CRM_PIPELINE_"


def _env_bool(raw: Optional[str], default: bool = False) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y", "on")


class PipelineSettings(BaseModel):
    """Runtime configuration for the record pipeline."""
    similarity_threshold: float = Field(
        default=0.8, ge=0.0, le=1.0,
        description="Min pair score for a duplicate candidate",
    )
    snapshot_path: Path = Field(
        default=REPO_ROOT / "artifacts" / "store_snapshot.json",
        description="Where the reference persistence adapter writes the store",
    )
    log_level: str = Field(default="INFO", description="Root log level name")
    log_json: bool = Field(default=False, description="Emit one JSON object per log line")
    alias_file: Optional[Path] = Field(default=None, description="Extra field aliases (JSON)")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "PipelineSettings":
        """Build settings from `.env` (if present) and the environment.

        Variables already set in the environment are never overridden by
        the file.
        """
        env_path = env_file or REPO_ROOT / ".env"
        if env_path.exists():
            load_dotenv(env_path, override=False)

        values = {}
        threshold = os.getenv(f"{ENV_PREFIX}SIMILARITY_THRESHOLD")
        if threshold:
            values["similarity_threshold"] = threshold
        snapshot_path = os.getenv(f"{ENV_PREFIX}SNAPSHOT_PATH")
        if snapshot_path:
            values["snapshot_path"] = snapshot_path
        log_level = os.getenv(f"{ENV_PREFIX}LOG_LEVEL")
        if log_level:
            values["log_level"] = log_level
        values["log_json"] = _env_bool(os.getenv(f"{ENV_PREFIX}LOG_JSON"))
        alias_file = os.getenv(f"{ENV_PREFIX}ALIAS_FILE")
        if alias_file:
            values["alias_file"] = alias_file

        return cls(**values)


DEFAULT_SETTINGS = PipelineSettings()
