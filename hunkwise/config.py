"""
Configuration — patch-engine settings from ``.hunkwise.yaml``,
``HUNKWISE_*`` environment variables and built-in defaults.

Command-line flags are layered on top by the caller; environment wins
over the YAML file, which wins over the defaults.
"""

import os

import yaml


_DEFAULTS = {
    "fuzzy_threshold": 0.8,
    "three_way": True,
    "whitespace_fix": True,
    "strict_hunk_counts": False,
    "git_binary": "git",
    "log_dir": ".hunkwise/logs",
    "metrics": True,
    "metrics_dir": ".hunkwise",
}

_CONFIG_NAMES = (".hunkwise.yaml", ".hunkwise.yml")
_ENV_PREFIX = "HUNKWISE_"


def _locate(config_path: str | None) -> str | None:
    """Return the config file to read, or ``None``.

    An explicit path is used only if it exists; otherwise the working
    directory and then the home directory are searched.
    """
    if config_path:
        return config_path if os.path.isfile(config_path) else None

    for directory in (os.getcwd(), os.path.expanduser("~")):
        for name in _CONFIG_NAMES:
            candidate = os.path.join(directory, name)
            if os.path.isfile(candidate):
                return candidate
    return None


def _read_yaml(path: str) -> dict:
    # Unreadable or malformed files behave like an empty config
    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return {}
    return loaded if isinstance(loaded, dict) else {}


def _to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _setting(key: str, file_values: dict, cast=str):
    raw = os.getenv(_ENV_PREFIX + key.upper())
    if raw is None:
        raw = file_values.get(key)
    if raw is None:
        return _DEFAULTS[key]
    return cast(raw)


class Config:
    """Resolved settings for parsing and applying patches."""

    def __init__(self, yaml_data: dict | None = None):
        values = yaml_data or {}

        self.FUZZY_THRESHOLD: float = _setting("fuzzy_threshold", values, float)
        if not 0.0 <= self.FUZZY_THRESHOLD <= 1.0:
            raise ValueError(
                f"fuzzy_threshold must be between 0 and 1, "
                f"got {self.FUZZY_THRESHOLD}"
            )

        # Apply strategy
        self.THREE_WAY: bool = _setting("three_way", values, _to_bool)
        self.WHITESPACE_FIX: bool = _setting("whitespace_fix", values, _to_bool)
        self.STRICT_HUNK_COUNTS: bool = _setting("strict_hunk_counts", values,
                                                 _to_bool)
        self.GIT_BINARY: str = _setting("git_binary", values)

        self.LOG_DIR: str = _setting("log_dir", values)

        # Apply metrics (JSONL under METRICS_DIR)
        self.METRICS: bool = _setting("metrics", values, _to_bool)
        self.METRICS_DIR: str = _setting("metrics_dir", values)

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Build a Config from the first config file found, if any."""
        path = _locate(config_path)
        return cls(_read_yaml(path) if path else {})
