"""Unified configuration loaded from .editorial.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".editorial.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "editorial" / "config.toml"


class ServerSectionConfig(BaseModel):
    """[server] section."""

    host: str = "127.0.0.1"
    port: int = 3000
    data_dir: str = "./data"
    uploads_dir: str = "./assets/uploads"
    admin_token: str = ""
    max_body_mb: int = 25

    @property
    def auth_enabled(self) -> bool:
        return bool(self.admin_token)


class ClientSectionConfig(BaseModel):
    """[client] section."""

    api_base: str = "http://127.0.0.1:3000"
    site_base: str = ""
    storage_dir: str = "./.editorial-local"
    rate_limit_delay_ms: int = 150
    retry_delay_ms: int = 2000
    max_retries: int = 3
    health_timeout_s: float = 1.2
    cache_ttl_s: float = 1.5


class GitHubSectionConfig(BaseModel):
    """[github] section.

    Values here are defaults; settings saved by the admin in the local
    store take precedence at runtime.
    """

    owner: str = ""
    repo: str = ""
    branch: str = "main"
    token: str = ""
    db_path: str = "data/db.json"
    cover_path: str = "data/cover.json"
    uploads_path: str = "assets/uploads"

    @property
    def is_configured(self) -> bool:
        return bool(self.owner and self.repo and self.token)


class EditorialConfig(BaseModel):
    """Top-level configuration."""

    server: ServerSectionConfig = Field(default_factory=ServerSectionConfig)
    client: ClientSectionConfig = Field(default_factory=ClientSectionConfig)
    github: GitHubSectionConfig = Field(default_factory=GitHubSectionConfig)


def load_config(path: str | Path | None = None) -> EditorialConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .editorial.toml in CWD
    3. ~/.config/editorial/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged EditorialConfig.
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
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    config = EditorialConfig.model_validate(data) if data else EditorialConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: EditorialConfig, **cli_kwargs: object) -> EditorialConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "host": ("server", "host"),
        "port": ("server", "port"),
        "data_dir": ("server", "data_dir"),
        "uploads_dir": ("server", "uploads_dir"),
        "admin_token": ("server", "admin_token"),
        "api_base": ("client", "api_base"),
        "site_base": ("client", "site_base"),
        "storage_dir": ("client", "storage_dir"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return EditorialConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: EditorialConfig) -> EditorialConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "PORT": ("server", "port"),
        "ADMIN_TOKEN": ("server", "admin_token"),
        "EDITORIAL_HOST": ("server", "host"),
        "EDITORIAL_DATA_DIR": ("server", "data_dir"),
        "EDITORIAL_UPLOADS_DIR": ("server", "uploads_dir"),
        "EDITORIAL_API_BASE": ("client", "api_base"),
        "EDITORIAL_SITE_BASE": ("client", "site_base"),
        "EDITORIAL_STORAGE_DIR": ("client", "storage_dir"),
        "GITHUB_OWNER": ("github", "owner"),
        "GITHUB_REPO": ("github", "repo"),
        "GITHUB_BRANCH": ("github", "branch"),
        "GITHUB_TOKEN": ("github", "token"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    # "owner/name" form, as used by CI environments
    repo = data["github"]["repo"]
    if "/" in repo and not data["github"]["owner"]:
        owner, _, name = repo.partition("/")
        data["github"]["owner"] = owner
        data["github"]["repo"] = name

    return EditorialConfig.model_validate(data)
