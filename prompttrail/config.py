# prompttrail/config.py
"""
Configuration for PromptTrail.

All configuration flows through this module. Values are loaded from an
optional ``prompttrail.toml`` and from environment variables (via .env file),
validated with Pydantic. Environment variables win over the TOML file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from prompttrail.config_file import find_config, get_section, load_config
from prompttrail.privacy.redaction import DEFAULT_MAX_PASSES, SENSITIVITY_THRESHOLDS

logger = structlog.get_logger(__name__)

# Resolve .env relative to the project root (one level above prompttrail/),
# so the config works regardless of the user's current working directory.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class _EnvFirstSettings(BaseSettings):
    """Base for subsystem configs: env and .env beat values seeded from TOML."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return env_settings, dotenv_settings, init_settings, file_secret_settings


class SessionConfig(_EnvFirstSettings):
    """Bounds and metadata for recorded sessions."""

    max_interactions: int = Field(50, alias="PROMPTTRAIL_MAX_INTERACTIONS")
    inactivity_timeout: float = Field(
        1800.0,
        alias="PROMPTTRAIL_INACTIVITY_TIMEOUT",
    )  # seconds of idleness before a session closes (before quality scaling)
    max_timeout_multiplier: float = Field(3.0, alias="PROMPTTRAIL_MAX_TIMEOUT_MULTIPLIER")
    history_limit: int = Field(100, alias="PROMPTTRAIL_HISTORY_LIMIT")
    filter_relevant_interactions: bool = Field(False, alias="PROMPTTRAIL_FILTER_RELEVANT")
    tool_version: str = Field("unknown", alias="PROMPTTRAIL_TOOL_VERSION")
    workspace_id: str = Field("unknown", alias="PROMPTTRAIL_WORKSPACE_ID")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def normalize_limits(self) -> "SessionConfig":
        self.max_interactions = max(1, int(self.max_interactions))
        self.inactivity_timeout = max(1.0, float(self.inactivity_timeout))
        self.max_timeout_multiplier = max(1.0, float(self.max_timeout_multiplier))
        self.history_limit = max(1, int(self.history_limit))
        self.tool_version = self.tool_version.strip() or "unknown"
        self.workspace_id = self.workspace_id.strip() or "unknown"
        return self


class PrivacyConfig(_EnvFirstSettings):
    """Configuration for secret redaction and sensitive-path handling."""

    sensitivity_level: str = Field("balanced", alias="PROMPTTRAIL_SENSITIVITY_LEVEL")
    redaction_max_passes: int = Field(DEFAULT_MAX_PASSES, alias="PROMPTTRAIL_REDACTION_MAX_PASSES")
    ignore_file: str = Field(".gitignore", alias="PROMPTTRAIL_IGNORE_FILE")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def normalize_levels(self) -> "PrivacyConfig":
        self.sensitivity_level = self.sensitivity_level.strip().lower()
        if self.sensitivity_level not in SENSITIVITY_THRESHOLDS:
            raise ValueError(
                "PROMPTTRAIL_SENSITIVITY_LEVEL must be one of: strict, balanced, relaxed."
            )
        self.redaction_max_passes = max(0, int(self.redaction_max_passes))
        self.ignore_file = self.ignore_file.strip() or ".gitignore"
        return self


class StoreConfig(_EnvFirstSettings):
    """Where sanitized session summaries land locally."""

    data_dir: Path = Field(Path("./prompttrail_data"), alias="PROMPTTRAIL_DATA_DIR")
    sessions_dir: Path = Field(
        Path("./prompttrail_data/sessions"), alias="PROMPTTRAIL_SESSIONS_DIR"
    )
    max_count: int = Field(100, alias="PROMPTTRAIL_STORE_MAX_COUNT")

    # Factory default used for detecting whether the user explicitly set a path.
    _DEFAULT_SESSIONS: Path = Path("./prompttrail_data/sessions")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def derive_paths_from_data_dir(self) -> "StoreConfig":
        """Derive sessions_dir from data_dir when the user hasn't overridden it."""
        if self.sessions_dir == self._DEFAULT_SESSIONS:
            self.sessions_dir = self.data_dir / "sessions"
        self.max_count = max(1, int(self.max_count))
        return self


class PromptTrailConfig:
    """
    Master configuration that composes all subsystem configs.

    Every component receives its config from here. Pass ``toml_path`` to pin
    the TOML file, ``use_toml=False`` to ignore TOML entirely.
    """

    def __init__(self, toml_path: Optional[Path] = None, use_toml: bool = True):
        data: dict[str, Any] = {}
        self.toml_path: Optional[Path] = None
        if use_toml:
            self.toml_path = toml_path if toml_path is not None else find_config()
            if self.toml_path is not None:
                data = load_config(self.toml_path)
                logger.debug("config.toml_loaded", path=str(self.toml_path))

        self.session = SessionConfig(**get_section(data, "session"))
        self.privacy = PrivacyConfig(**get_section(data, "privacy"))
        self.store = StoreConfig(**get_section(data, "store"))

        # Resolve all Path fields to absolute so CWD changes don't break them.
        self._resolve_paths()

    def _resolve_paths(self) -> None:
        """Resolve relative Path fields against the project root (where .env lives)."""
        def _resolve(p: Path) -> Path:
            if p.is_absolute():
                return p
            return (_PROJECT_ROOT / p).resolve()

        self.store.data_dir = _resolve(self.store.data_dir)
        self.store.sessions_dir = _resolve(self.store.sessions_dir)

    def __repr__(self) -> str:
        return (
            f"PromptTrailConfig(max_interactions={self.session.max_interactions}, "
            f"timeout={self.session.inactivity_timeout}s, "
            f"sensitivity={self.privacy.sensitivity_level})"
        )
