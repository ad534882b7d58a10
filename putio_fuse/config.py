"""
Configuration management for putiofs.

Optional config file: ~/.config/putiofs/config.json
  {"token": "...", "api_url": "...", "attr_timeout": 3600, "api_timeout": 30}

Token resolution (highest → lowest):
  1. CLI flag (--token)
  2. PUTIO_TOKEN environment variable
  3. config.json "token"
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .api_client import DEFAULT_API_URL, DEFAULT_UPLOAD_URL, DEFAULT_USER_AGENT

log = logging.getLogger(__name__)

TOKEN_ENV_VAR = "PUTIO_TOKEN"


@dataclass
class FsConfig:
    """Settings for one putiofs mount."""
    token: str = ""
    api_url: str = DEFAULT_API_URL
    upload_url: str = DEFAULT_UPLOAD_URL
    user_agent: str = DEFAULT_USER_AGENT
    # How long the kernel may cache attributes and lookups (seconds)
    attr_timeout: float = 3600.0
    # Timeout for metadata API calls; streaming reads have no read timeout
    api_timeout: float = 30.0
    readonly: bool = False
    debug: bool = False


def get_config_dir() -> Path:
    """Get putiofs config directory (~/.config/putiofs/)."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(xdg_config) / "putiofs"


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


def read_config_file() -> Optional[dict]:
    """Read config.json. Returns None if not found or unreadable."""
    path = get_config_path()
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        log.warning(f"Could not read config at {path}: {e}")
        return None
    if not isinstance(data, dict):
        log.warning(f"Ignoring config at {path}: expected a JSON object")
        return None
    return data


def load_config(
    cli_token: Optional[str] = None,
    readonly: bool = False,
    debug: bool = False,
) -> FsConfig:
    """Load the mount configuration, resolving the access token."""
    config = FsConfig(readonly=readonly, debug=debug)
    file_data = read_config_file() or {}

    config.api_url = file_data.get("api_url", config.api_url)
    config.upload_url = file_data.get("upload_url", config.upload_url)
    config.user_agent = file_data.get("user_agent", config.user_agent)
    config.attr_timeout = float(file_data.get("attr_timeout", config.attr_timeout))
    config.api_timeout = float(file_data.get("api_timeout", config.api_timeout))

    config.token = cli_token or os.environ.get(TOKEN_ENV_VAR) or file_data.get("token", "")
    return config
