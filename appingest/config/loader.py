"""
Settings resolution for AppIngest.

Every run needs the same handful of connection settings: server URL,
username, password, tenant API key and organization group name. They are
resolved exactly once, before any component runs, from an ordered list of
sources. The first source that provides a value wins.

Sources
-------
1. **Explicit parameter** (CLI flag or keyword argument)
2. **Environment** (UEM_SERVER_URL, UEM_USERNAME, UEM_PASSWORD, UEM_API_KEY,
   UEM_ORG_GROUP), optionally loaded from a .env file
3. **Settings file** (YAML, passed with --config). Never holds the password.
4. **Interactive prompt** (password read without echo)

Tuning values (platform, chunk size) follow the same order but fall back to
built-in defaults instead of prompting.

Merge Behavior
--------------
YAML layering (settings files here, descriptor defaults in
appingest.descriptors) uses deep merging with "last wins" semantics:
  - **Dicts**: Recursively merged (keys from overlay override base)
  - **Lists**: Completely replaced (NOT appended/extended)
  - **Scalars**: Overwritten

Functions
---------
resolve_settings : function
    Build the immutable Settings for a run (main public API).
normalize_server_url : function
    Add a missing scheme and strip trailing slashes.

Notes
-----
- Settings are immutable once resolved
- Missing required values after prompting raise ConfigError
- YAML errors are chained with "from err" for better debugging
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from appingest.auth import CredentialManager
from appingest.exceptions import ConfigError
from appingest.logging import get_global_logger

DEFAULT_PLATFORM = "WinRT"
DEFAULT_CHUNK_SIZE_MB = 5
MAX_CHUNK_SIZE_MB = 100


# -------------------------------
# Data types
# -------------------------------


@dataclass(frozen=True)
class Settings:
    """
    Connection and tuning settings for one run.
    """

    server_url: str
    username: str
    password: str = field(repr=False)
    api_key: str = field(repr=False)
    org_group: str
    platform: str = DEFAULT_PLATFORM
    chunk_size: int = DEFAULT_CHUNK_SIZE_MB * 1024 * 1024


# -------------------------------
# YAML helpers
# -------------------------------


def load_yaml_file(p: Path, loader: type[yaml.SafeLoader] = yaml.SafeLoader) -> Any:
    """
    Load a YAML (or JSON) file and return the parsed Python object.

    loader must be yaml.SafeLoader or a subclass of it.

    Raises:
      FileNotFoundError - when file does not exist
      ConfigError       - for invalid or empty documents, with chained context
    """
    if not p.exists():
        raise FileNotFoundError(f"file not found: {p}")
    try:
        with p.open("r", encoding="utf-8-sig") as f:
            data = yaml.load(f, Loader=loader)
    except yaml.YAMLError as err:
        raise ConfigError(f"invalid YAML/JSON in {p}: {err}") from err
    if data is None:
        raise ConfigError(f"file is empty: {p}")
    return data


def deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Deep-merge two dicts with "overlay wins".

    Rules:
      - dict + dict -> deep merge
      - list + list -> overlay REPLACES base (not concatenated)
      - everything else -> overlay overwrites base

    This function does not mutate inputs; returns a new dict.
    """
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = deep_merge_dicts(result[k], v)
        else:
            result[k] = v
    return result


# -------------------------------
# Value normalization
# -------------------------------


def normalize_server_url(raw: str) -> str:
    """
    Normalize a server URL to "scheme://host[/path]" without trailing slash.

    A bare host name ("cn135.awmdm.com") gets https:// prepended.
    """
    url = raw.strip()
    if not url:
        raise ConfigError("server URL is empty")
    if "://" not in url:
        url = f"https://{url}"
    return url.rstrip("/")


def _chunk_size_bytes(value: Any) -> int:
    """Convert a chunk size in MiB to bytes, enforcing the accepted range."""
    try:
        mb = int(value)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"chunk size must be an integer (MiB), got {value!r}") from err
    if mb < 1 or mb > MAX_CHUNK_SIZE_MB:
        raise ConfigError(
            f"chunk size must be between 1 and {MAX_CHUNK_SIZE_MB} MiB, got {mb}"
        )
    return mb * 1024 * 1024


def _load_settings_file(config_file: Path | None) -> dict[str, Any]:
    if config_file is None:
        return {}
    data = load_yaml_file(Path(config_file))
    if not isinstance(data, dict):
        raise ConfigError(f"settings file must be a mapping: {config_file}")
    if "password" in data:
        raise ConfigError(
            f"settings file must not contain a password: {config_file}. "
            "Use UEM_PASSWORD or the interactive prompt."
        )
    return data


# -------------------------------
# Public API
# -------------------------------


def resolve_settings(
    *,
    server_url: str | None = None,
    username: str | None = None,
    api_key: str | None = None,
    org_group: str | None = None,
    platform: str | None = None,
    chunk_size_mb: int | None = None,
    config_file: Path | None = None,
    credentials: CredentialManager | None = None,
) -> Settings:
    """
    Resolve the settings for a run from all configured sources.

    Steps
      1) Load the optional settings file.
      2) For each required value: parameter > environment > file > prompt.
      3) Password: environment > prompt (never from parameter files).
      4) Tuning values: parameter > environment > file > default.

    Returns
      A frozen Settings instance.

    Raises
      ConfigError when a required value is still missing, when the settings
      file is invalid, or when the chunk size is out of range.
    """
    logger = get_global_logger()
    creds = credentials or CredentialManager()
    file_values = _load_settings_file(config_file)
    if config_file is not None:
        logger.verbose("CONFIG", f"Loaded settings file: {config_file}")

    def pick(explicit: str | None, env_key: str, file_key: str, label: str) -> str:
        for source, value in (
            ("parameter", explicit),
            ("environment", creds.env(env_key)),
            ("settings file", file_values.get(file_key)),
        ):
            if value is not None and str(value).strip():
                logger.debug("CONFIG", f"{file_key} from {source}")
                return str(value).strip()
        prompted = creds.prompt(label)
        if prompted is None:
            raise ConfigError(f"missing required setting: {file_key}")
        return prompted

    resolved_url = normalize_server_url(
        pick(server_url, "SERVER_URL", "server_url", "UEM server URL")
    )
    resolved_user = pick(username, "USERNAME", "username", "username")
    password = creds.get_password()
    if not password:
        raise ConfigError("missing required setting: password")
    resolved_key = pick(api_key, "API_KEY", "api_key", "API key")
    resolved_group = pick(org_group, "ORG_GROUP", "org_group", "organization group name")

    resolved_platform = (
        platform
        or creds.env("PLATFORM")
        or file_values.get("platform")
        or DEFAULT_PLATFORM
    )

    raw_chunk = chunk_size_mb
    if raw_chunk is None:
        raw_chunk = creds.env("CHUNK_SIZE_MB")
    if raw_chunk is None:
        raw_chunk = file_values.get("chunk_size_mb", DEFAULT_CHUNK_SIZE_MB)

    settings = Settings(
        server_url=resolved_url,
        username=resolved_user,
        password=password,
        api_key=resolved_key,
        org_group=resolved_group,
        platform=str(resolved_platform),
        chunk_size=_chunk_size_bytes(raw_chunk),
    )
    logger.verbose(
        "CONFIG",
        f"Server {settings.server_url}, group {settings.org_group!r}, "
        f"platform {settings.platform}, chunk size {settings.chunk_size} bytes",
    )
    return settings
