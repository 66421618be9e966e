"""
Layered configuration for diarysync.

Three layers are merged, later ones winning:
    1. Built-in defaults (paths, sync, logging sections)
    2. A YAML or JSON config file, if one is given and exists
    3. Environment variables: DIARYSYNC_<SECTION>__<KEY>

Usage:
    config = Config(config_file="config/diarysync.yaml")

    config.get("sync.root")             # "users/default"
    config.get_float("sync.timeout", 10.0)
"""

import json
import os
from typing import Any

import yaml

from .exceptions import ConfigurationError

_DEFAULT_ENV_PREFIX = "DIARYSYNC_"
_DEFAULT_DATA_DIR_NAME = ".diarysync-data"


def _merge(target: dict, source: dict) -> None:
    """Merge *source* into *target*, descending into sections both sides share."""
    for key, value in source.items():
        if isinstance(target.get(key), dict) and isinstance(value, dict):
            _merge(target[key], value)
        else:
            target[key] = value


class Config:
    """
    Configuration for one diarysync process.

    Environment variables nest on double underscores, so
    ``DIARYSYNC_SYNC__ROOT=users/bob`` sets ``sync.root``. Values taken from
    the environment are strings; use :meth:`get_float` for numbers.
    """

    def __init__(
        self,
        config_file: str | None = None,
        env_prefix: str = _DEFAULT_ENV_PREFIX,
        data_dir: str | None = None,
        defaults: dict[str, Any] | None = None,
    ):
        """
        Args:
            config_file: YAML (.yaml/.yml) or JSON (.json) file. Missing files are ignored.
            env_prefix: Prefix of environment overrides. Empty disables them.
            data_dir: Where local images live. Defaults to ~/.diarysync-data.
            defaults: Extra defaults merged over the built-in ones.
        """
        self.config_file = config_file
        self.env_prefix = env_prefix or ""
        self._data_dir = os.path.expanduser(data_dir or os.path.join("~", _DEFAULT_DATA_DIR_NAME))

        self.config_data: dict[str, Any] = self._builtin_defaults()
        _merge(self.config_data, defaults or {})
        if config_file and os.path.exists(config_file):
            _merge(self.config_data, self._load_file(config_file))
        _merge(self.config_data, self._env_overrides())

    def _builtin_defaults(self) -> dict[str, Any]:
        return {
            "paths": {
                "data_dir": self._data_dir,
                "image_dir": os.path.join(self._data_dir, "images"),
            },
            "sync": {
                "root": "users/default",
                "timeout": 10.0,
            },
            "logging": {
                "level": "WARNING",
                "file": None,
            },
        }

    @staticmethod
    def _load_file(path: str) -> dict[str, Any]:
        ext = os.path.splitext(path)[1].lower()
        try:
            with open(path) as f:
                if ext in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                elif ext == ".json":
                    data = json.load(f)
                else:
                    raise ConfigurationError(f"Unsupported config file type: {path}")
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot parse config file {path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must hold a mapping")
        return data

    def _env_overrides(self) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        if not self.env_prefix:
            return overrides
        for env_key, env_value in os.environ.items():
            if not env_key.startswith(self.env_prefix):
                continue
            *sections, leaf = env_key[len(self.env_prefix) :].lower().split("__")
            node = overrides
            for section in sections:
                node = node.setdefault(section, {})
            node[leaf] = env_value
        return overrides

    def get(self, key_path: str, default: Any = None) -> Any:
        """Look up a dotted path such as ``"sync.root"``; *default* if any part is missing."""
        current: Any = self.config_data
        for part in key_path.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def get_float(self, key_path: str, default: float) -> float:
        value = self.get(key_path, default)
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{key_path} must be a number, got {value!r}") from e

    def set(self, key_path: str, value: Any) -> None:
        *sections, leaf = key_path.split(".")
        node = self.config_data
        for section in sections:
            node = node.setdefault(section, {})
        node[leaf] = value

    @property
    def sync_root(self) -> str:
        """Document-tree path holding this user's cards and shared records."""
        root = str(self.get("sync.root") or "").strip("/")
        if not root:
            raise ConfigurationError("sync.root must name a document path")
        return root

    def ensure_directories(self) -> None:
        """Create the configured local directories."""
        for path_value in self.get("paths", {}).values():
            if isinstance(path_value, str):
                os.makedirs(os.path.expanduser(path_value), exist_ok=True)


_config_instance: Config | None = None


def get_config(
    config_file: str | None = None,
    env_prefix: str = _DEFAULT_ENV_PREFIX,
    data_dir: str | None = None,
) -> Config:
    """Return the process-wide Config, creating it on first use."""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_file=config_file, env_prefix=env_prefix, data_dir=data_dir)
    return _config_instance


def reset_config() -> None:
    """Forget the process-wide Config (tests use this between cases)."""
    global _config_instance
    _config_instance = None
