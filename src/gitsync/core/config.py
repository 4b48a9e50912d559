"""Configuration management: TOML file, environment and flags, merged in that order."""

from __future__ import annotations

import logging
import os
import shutil
import tomllib
from pathlib import Path
from typing import Any, Callable, Mapping

from ..sync.models import SyncTarget

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GIT_SYNC_CONFIG"

DEFAULT_CONFIG: dict[str, Any] = {
    "sync": {
        "repo": "",
        "branch": "master",
        "rev": "HEAD",
        "depth": 0,
        "root": "/git",
        "dest": "",
        "wait": 0.0,
        "one_time": False,
        "max_sync_failures": 0,
        "permissions": None,
    },
    "auth": {
        "username": "",
        "password": "",
        "ssh": False,
        "ssh_key_path": "/etc/git-secret/ssh",
    },
    "logging": {
        "verbosity": 0,
        "json": False,
    },
}


class ConfigError(Exception):
    """Raised when the merged configuration cannot describe a sync target."""


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "t", "true", "yes", "y", "on"):
        return True
    if lowered in ("0", "f", "false", "no", "n", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def parse_mode(value: Any) -> int | None:
    """Parse a file mode. Strings are octal ("0755", "755", "0o755"); 0 means unset."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"not a file mode: {value!r}")
    if isinstance(value, int):
        mode = value
    else:
        text = str(value).strip().lower()
        if text.startswith("0o"):
            text = text[2:]
        mode = int(text, 8)
    if mode < 0 or mode > 0o7777:
        raise ValueError(f"file mode out of range: {value!r}")
    return mode or None


# env var -> (section, key, parser)
ENV_VARS: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "GIT_SYNC_REPO": ("sync", "repo", str),
    "GIT_SYNC_BRANCH": ("sync", "branch", str),
    "GIT_SYNC_REV": ("sync", "rev", str),
    "GIT_SYNC_DEPTH": ("sync", "depth", int),
    "GIT_SYNC_ROOT": ("sync", "root", str),
    "GIT_SYNC_DEST": ("sync", "dest", str),
    "GIT_SYNC_WAIT": ("sync", "wait", float),
    "GIT_SYNC_ONE_TIME": ("sync", "one_time", parse_bool),
    "GIT_SYNC_MAX_SYNC_FAILURES": ("sync", "max_sync_failures", int),
    "GIT_SYNC_PERMISSIONS": ("sync", "permissions", parse_mode),
    "GIT_SYNC_USERNAME": ("auth", "username", str),
    "GIT_SYNC_PASSWORD": ("auth", "password", str),
    "GIT_SYNC_SSH": ("auth", "ssh", parse_bool),
}


def config_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect settings from GIT_SYNC_* variables. Unparseable values keep the default."""
    environ = os.environ if environ is None else environ
    result: dict[str, Any] = {}
    for var, (section, key, parser) in ENV_VARS.items():
        raw = environ.get(var, "")
        if raw == "":
            continue
        try:
            value = parser(raw)
        except ValueError:
            logger.error("invalid value for %r: using default: %r", var, DEFAULT_CONFIG[section][key])
            continue
        result.setdefault(section, {})[key] = value
    return result


def load_config(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Load merged config: defaults <- TOML file <- environment <- overrides.

    ``config_path`` falls back to ``$GIT_SYNC_CONFIG``. An explicitly named
    file that does not exist is an error; overrides with value None are
    ignored so unset CLI flags do not mask lower layers.
    """
    environ = os.environ if environ is None else environ
    config = DEFAULT_CONFIG.copy()

    path = config_path or environ.get(CONFIG_ENV_VAR)
    if path:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"config file not found: {path}")
        try:
            with open(path, "rb") as f:
                file_conf = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"invalid config file {path}: {e}") from e
        config = _deep_merge(config, file_conf)

    config = _deep_merge(config, config_from_env(environ))

    if overrides:
        config = _deep_merge(config, _drop_none(overrides))

    return config


def _drop_none(data: dict) -> dict:
    result = {}
    for key, value in data.items():
        if isinstance(value, dict):
            result[key] = _drop_none(value)
        elif value is not None:
            result[key] = value
    return result


def get_config_value(config: dict, key: str) -> Any:
    """Get a nested config value by dotted key."""
    parts = key.split(".")
    current = config
    for part in parts:
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return None
    return current


def default_dest(repo: str) -> str:
    """Leaf path segment of the repo locator."""
    return repo.strip("/").split("/")[-1]


def build_target(config: dict[str, Any], check_git: bool = True) -> SyncTarget:
    """Validate the ``[sync]`` section and turn it into a SyncTarget."""
    sync = config.get("sync", {})

    repo = sync.get("repo") or ""
    if not repo:
        raise ConfigError("--repo or $GIT_SYNC_REPO must be provided")

    dest = sync.get("dest") or default_dest(repo)
    if "/" in dest or dest in (".", ".."):
        raise ConfigError("--dest must be a bare name")

    for key in ("depth", "max_sync_failures"):
        value = sync.get(key, 0)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ConfigError(f"{key} must be a non-negative integer, got {value!r}")

    wait = sync.get("wait", 0)
    if isinstance(wait, bool) or not isinstance(wait, (int, float)) or wait < 0:
        raise ConfigError(f"wait must be a non-negative number of seconds, got {wait!r}")

    try:
        chmod = parse_mode(sync.get("permissions"))
    except ValueError as e:
        raise ConfigError(f"invalid permissions: {e}") from e

    if check_git and shutil.which("git") is None:
        raise ConfigError("git executable not found on PATH")

    return SyncTarget(
        repo=repo,
        root=str(sync.get("root") or DEFAULT_CONFIG["sync"]["root"]),
        dest=dest,
        branch=sync.get("branch") or DEFAULT_CONFIG["sync"]["branch"],
        rev=sync.get("rev") or DEFAULT_CONFIG["sync"]["rev"],
        depth=sync.get("depth", 0),
        chmod=chmod,
    )
