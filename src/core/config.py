"""
System Update - Configuration
Loads the optional JSON config file and merges command-line overrides.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/system-update/config.json")
CONFIG_ENV_VAR = "SYSTEM_UPDATE_CONFIG"


@dataclass(frozen=True)
class RunConfig:
    """Settings for one run."""
    email: Optional[str] = None
    auto_yes: bool = False
    log_dir: Path = Path("/var/log")
    supported_os: list[str] = field(default_factory=lambda: ["ubuntu"])
    required_commands: list[str] = field(default_factory=lambda: ["apt", "apt-get"])
    mail_commands: list[str] = field(default_factory=lambda: ["mail", "sendmail"])

    def log_file_for(self, started: datetime) -> Path:
        """Per-run log file path, unique to the second."""
        return self.log_dir / f"system-update-{started:%Y%m%d-%H%M%S}.log"

    def without_email(self) -> "RunConfig":
        return replace(self, email=None)


def resolve_config_path(explicit: Optional[str] = None) -> Path:
    """Config path from the flag, else the environment, else the default."""
    if explicit:
        return Path(explicit)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def _read_config_file(config_path: Path) -> dict:
    """Load the JSON file, returning an empty dict if missing or unreadable."""
    if not config_path.exists():
        return {}
    try:
        with open(config_path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Failed to load config {config_path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config {config_path}: expected a JSON object")
        return {}
    return data


_EXPECTED = {
    "email": "a string or null",
    "auto_yes": "true or false",
    "log_dir": "a non-empty string",
    "supported_os": "a list of strings",
    "required_commands": "a list of strings",
    "mail_commands": "a list of strings",
}


def _valid_value(key: str, value) -> bool:
    if key == "email":
        return value is None or isinstance(value, str)
    if key == "auto_yes":
        return isinstance(value, bool)
    if key == "log_dir":
        return isinstance(value, str) and bool(value)
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def load_config(
    config_path: Optional[Path] = None,
    email: Optional[str] = None,
    auto_yes: bool = False,
) -> RunConfig:
    """
    Build the run configuration.

    File values replace defaults; a non-empty `email` and a True `auto_yes`
    from the command line replace file values.

    Args:
        config_path: JSON config file (defaults apply if it does not exist).
        email: Recipient given on the command line.
        auto_yes: True when --yes was given.

    Returns:
        The merged RunConfig.
    """
    data = _read_config_file(config_path) if config_path else {}

    known = {f.name for f in fields(RunConfig)}
    values = {}
    for key, value in data.items():
        if key not in known:
            logger.debug(f"Ignoring unknown config key: {key}")
            continue
        if not _valid_value(key, value):
            logger.warning(f"Ignoring config key {key}: expected {_EXPECTED[key]}, got {value!r}")
            continue
        values[key] = value

    if "log_dir" in values:
        values["log_dir"] = Path(values["log_dir"])

    config = RunConfig(**values)
    if email:
        config = replace(config, email=email)
    if auto_yes:
        config = replace(config, auto_yes=True)
    return config
