"""Unified configuration loaded from .postdesk.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from postdesk.integrations.supabase import SupabaseConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".postdesk.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
    Path.home() / ".config" / "postdesk",
]


class StoreBackend(StrEnum):
    """Where posts are persisted."""

    LOCAL = "local"
    SUPABASE = "supabase"


class StoreSectionConfig(BaseModel):
    """[store] section."""

    backend: StoreBackend = StoreBackend.LOCAL
    directory: str = "./posts"


class SupabaseSectionConfig(BaseModel):
    """[supabase] section."""

    url: str = ""
    anon_key: str = ""
    access_token: str = ""
    jwt_secret: str = ""
    timeout: float = 15.0


class SessionSectionConfig(BaseModel):
    """[session] section — fixed owner for the local backend."""

    owner_id: str = ""


class NotificationConfig(BaseModel):
    """[notifications] section."""

    ntfy_url: str = ""
    ntfy_topic: str = "postdesk"
    enabled: bool = True

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.ntfy_url)


class LoggingSectionConfig(BaseModel):
    """[log] section."""

    level: str = "WARNING"


class PostdeskConfig(BaseModel):
    """Top-level configuration model."""

    store: StoreSectionConfig = Field(default_factory=StoreSectionConfig)
    supabase: SupabaseSectionConfig = Field(default_factory=SupabaseSectionConfig)
    session: SessionSectionConfig = Field(default_factory=SessionSectionConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    log: LoggingSectionConfig = Field(default_factory=LoggingSectionConfig)

    def to_supabase_config(self) -> SupabaseConfig:
        """Convert to SupabaseConfig for the remote store client."""
        return SupabaseConfig(
            url=self.supabase.url,
            anon_key=self.supabase.anon_key,
            access_token=self.supabase.access_token,
            jwt_secret=self.supabase.jwt_secret,
            timeout=self.supabase.timeout,
        )


def load_config(path: str | Path | None = None) -> PostdeskConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .postdesk.toml in CWD
    3. ~/.config/postdesk/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged PostdeskConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        global_config = Path.home() / ".config" / "postdesk" / "config.toml"
        if not data and global_config.exists():
            data = _load_toml(global_config)
            logger.info("Loaded config from %s", global_config)

    try:
        config = PostdeskConfig.model_validate(data) if data else PostdeskConfig()
    except ValueError as exc:
        logger.warning("Invalid configuration, using defaults: %s", exc)
        config = PostdeskConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: PostdeskConfig, **cli_kwargs: object) -> PostdeskConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "store_backend": ("store", "backend"),
        "store_directory": ("store", "directory"),
        "owner_id": ("session", "owner_id"),
        "access_token": ("supabase", "access_token"),
        "log_level": ("log", "level"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return PostdeskConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: PostdeskConfig) -> PostdeskConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "POSTDESK_STORE_BACKEND": ("store", "backend"),
        "POSTDESK_STORE_DIR": ("store", "directory"),
        "SUPABASE_URL": ("supabase", "url"),
        "SUPABASE_ANON_KEY": ("supabase", "anon_key"),
        "SUPABASE_ACCESS_TOKEN": ("supabase", "access_token"),
        "SUPABASE_JWT_SECRET": ("supabase", "jwt_secret"),
        "POSTDESK_OWNER_ID": ("session", "owner_id"),
        "POSTDESK_NTFY_URL": ("notifications", "ntfy_url"),
        "POSTDESK_NTFY_TOPIC": ("notifications", "ntfy_topic"),
        "POSTDESK_LOG_LEVEL": ("log", "level"),
        "SUPABASE_TIMEOUT": ("supabase", "timeout"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_checked(data, section, field, value, env_var)

    enabled_raw = os.environ.get("POSTDESK_NOTIFICATIONS_ENABLED")
    if enabled_raw is not None:
        data["notifications"]["enabled"] = enabled_raw.lower() in ("true", "1", "yes")

    return PostdeskConfig.model_validate(data)


def _set_checked(
    data: dict[str, dict[str, object]], section: str, field: str, value: object, source: str
) -> None:
    """Set one override, keeping the previous value if it does not validate."""
    previous = data[section][field]
    data[section][field] = value
    try:
        PostdeskConfig.model_validate(data)
    except ValueError as exc:
        logger.warning("Ignoring invalid %s=%r: %s", source, value, exc)
        data[section][field] = previous
