"""Constants used in the project."""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    RESOLUTION_ERROR = 3


class RangePolicies(Enum):
    """Version picking policies selectable from config.

    Args:
        Enum (string): Policy names accepted in YAML and on the CLI.
    """

    HIGHEST = "highest"
    PREFER_INSTALLED = "prefer-installed"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "CHARTSOLVE_LOG_LEVEL"
    CONFIG_ENV = "CHARTSOLVE_CONFIG"
    CONFIG_FILE_NAME = "chartsolve.yml"

    # Resolution
    MAX_WORKERS = 8
    RESOLUTION_TIMEOUT_SEC = 120
    RANGE_POLICY = RangePolicies.HIGHEST.value
    PLAN_BREAK_CYCLES = True
    DEFAULT_NAMESPACE = "default"

    # Chart repository transport
    INDEX_FILE = "index.yaml"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300


def _to_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in ("true", "yes", "on", "1"):
        return True
    if text in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"not a boolean: {raw!r}")


# YAML keys -> (Constants attribute, caster)
_YAML_KEYS = {
    ("resolver", "max_workers"): ("MAX_WORKERS", int),
    ("resolver", "timeout_sec"): ("RESOLUTION_TIMEOUT_SEC", float),
    ("resolver", "range_policy"): ("RANGE_POLICY", str),
    ("resolver", "default_namespace"): ("DEFAULT_NAMESPACE", str),
    ("planner", "break_cycles"): ("PLAN_BREAK_CYCLES", _to_bool),
    ("http", "request_timeout"): ("REQUEST_TIMEOUT", int),
    ("http", "retry_max"): ("HTTP_RETRY_MAX", int),
    ("http", "retry_base_delay_sec"): ("HTTP_RETRY_BASE_DELAY_SEC", float),
    ("http", "cache_ttl_sec"): ("HTTP_CACHE_TTL_SEC", int),
}


def _candidate_config_paths() -> list:
    """Return config file locations in priority order."""
    paths = []
    env_path = os.environ.get(Constants.CONFIG_ENV)
    if env_path:
        paths.append(env_path)
    xdg = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    paths.append(os.path.join(xdg, "chartsolve", Constants.CONFIG_FILE_NAME))
    paths.append(os.path.join(os.getcwd(), Constants.CONFIG_FILE_NAME))
    return paths


def apply_config(cfg: Dict[str, Any]) -> None:
    """Apply a parsed YAML mapping onto Constants.

    Unknown sections and keys are ignored; values that fail to cast are
    logged and skipped.
    """
    if not isinstance(cfg, dict):
        return
    for (section, key), (attr, caster) in _YAML_KEYS.items():
        block = cfg.get(section)
        if not isinstance(block, dict) or key not in block:
            continue
        raw = block[key]
        try:
            value = caster(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid config value %s.%s=%r", section, key, raw)
            continue
        if attr == "RANGE_POLICY" and value not in {p.value for p in RangePolicies}:
            logger.warning("Ignoring unknown range policy %r", value)
            continue
        setattr(Constants, attr, value)


class ConfigError(Exception):
    """A config file exists but cannot be read or parsed."""


def load_yaml_config(path: Optional[str] = None) -> Optional[str]:
    """Load the first readable YAML config and apply it.

    Args:
        path: Explicit config path; when omitted the env var and the
            default locations are tried.

    Returns:
        The path that was applied, or None when no config file was found.

    Raises:
        ConfigError: the first config file found is unreadable or not valid YAML.
    """
    import yaml  # pylint: disable=import-outside-toplevel

    candidates = [path] if path else _candidate_config_paths()
    for candidate in candidates:
        if not candidate or not os.path.isfile(candidate):
            continue
        try:
            with open(candidate, "r", encoding="utf-8") as fh:
                cfg = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot load config {candidate}: {e}") from e
        apply_config(cfg)
        logger.debug("Loaded configuration from %s", candidate)
        return candidate
    return None
