import os
import pathlib
import sys
import yaml
from typing import Any, Dict, List, Optional, Tuple

# Default configuration values
DEFAULT_CONFIG: Dict[str, Any] = {
    "tolerance": 0.05,  # Relative deviation from the target still counted as a hit.
    "max_iterations": 14,  # Safety cap on bisection evaluations per search.
    "tool_timeout": 120.0,  # Seconds before an encoder call is abandoned.
    "default_level": "medium",  # Level used when neither --size nor --level is given.
    "auto_yes": False,  # Accept the least destructive fallback without prompting.
    "verbose": False,
    "log_file": "",  # Empty means no file logging.
}

# Configuration file paths
USER_CONFIG_DIR = pathlib.Path("~/.config/crnch").expanduser()
USER_CONFIG_PATH = USER_CONFIG_DIR / "config.yaml"
LOCAL_CONFIG_PATH = pathlib.Path(".crnch.yaml")  # Project-level config

# Source descriptions
SOURCE_DEFAULT = "application default"
SOURCE_USER_CONFIG = f"user global config file ({USER_CONFIG_PATH})"
SOURCE_LOCAL_CONFIG = f"local project config file ({LOCAL_CONFIG_PATH})"
SOURCE_ENV_VAR = "environment variable"
SOURCE_OVERRIDE = "runtime override"

ENV_VAR_PREFIX = "CRNCH_"

_VALID_LEVELS = ("low", "medium", "high")


def _coerce(key: str, value: Any) -> Any:
    """Cast ``value`` to the type of ``DEFAULT_CONFIG[key]``.

    Raises ``ValueError`` when the value cannot be represented.
    """
    original_type = type(DEFAULT_CONFIG[key])
    if isinstance(value, str):
        if original_type is bool:
            value = value.strip().lower() in ("true", "1", "yes", "on")
        elif original_type is int:
            value = int(value)
        elif original_type is float:
            value = float(value)
    elif original_type is float and isinstance(value, int) and not isinstance(value, bool):
        value = float(value)
    if not isinstance(value, original_type):
        raise ValueError(f"expected {original_type.__name__}, got {type(value).__name__}")
    if key == "default_level" and value.lower() not in _VALID_LEVELS:
        raise ValueError(f"level must be one of {', '.join(_VALID_LEVELS)}")
    if key == "tolerance" and not 0 <= value < 1:
        raise ValueError("tolerance must be in [0, 1)")
    if key == "max_iterations" and value < 1:
        raise ValueError("max_iterations must be at least 1")
    if key == "tool_timeout" and value <= 0:
        raise ValueError("tool_timeout must be positive")
    return value


class Config:
    def __init__(self):
        self._config: Dict[str, Any] = {}
        self._sources: Dict[str, str] = {}

        self._load_defaults()
        self._load_file(USER_CONFIG_PATH, SOURCE_USER_CONFIG)
        self._load_file(LOCAL_CONFIG_PATH, SOURCE_LOCAL_CONFIG)
        self._load_env_vars()
        # CLI overrides are applied afterwards through update_from_cli.

    def _load_defaults(self):
        for key, value in DEFAULT_CONFIG.items():
            self._config[key] = value
            self._sources[key] = SOURCE_DEFAULT

    def _load_file(self, path: pathlib.Path, source: str):
        if not path.exists():
            return
        try:
            with open(path, "r") as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            print(f"Error loading config '{path}': {e}", file=sys.stderr)
            return
        if loaded is None:
            return
        if not isinstance(loaded, dict):
            print(f"Warning: config file '{path}' does not contain a mapping.", file=sys.stderr)
            return
        for key, value in loaded.items():
            if key not in DEFAULT_CONFIG:
                continue
            try:
                self._config[key] = _coerce(key, value)
            except ValueError as e:
                print(f"Warning: ignoring '{key}' from '{path}': {e}", file=sys.stderr)
                continue
            self._sources[key] = source

    def _load_env_vars(self):
        for key in DEFAULT_CONFIG.keys():
            env_var_name = ENV_VAR_PREFIX + key.upper()
            env_var_value_str = os.getenv(env_var_name)
            if env_var_value_str is None:
                continue
            try:
                self._config[key] = _coerce(key, env_var_value_str)
            except ValueError:
                print(
                    f"Warning: Could not cast env var {env_var_name} value '{env_var_value_str}' to type {type(DEFAULT_CONFIG[key]).__name__}. Ignoring it.",
                    file=sys.stderr,
                )
                continue
            self._sources[key] = f"{SOURCE_ENV_VAR} ({env_var_name})"

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def get_default(self, key: str) -> Any:
        return DEFAULT_CONFIG.get(key)

    def get_all_keys(self) -> List[str]:
        return list(DEFAULT_CONFIG.keys())

    def set(self, key: str, value: Any, source: str = SOURCE_OVERRIDE) -> bool:
        """Validate ``value`` and persist it to the user config file."""
        if key not in DEFAULT_CONFIG:
            print(
                f"Error: Configuration key '{key}' is not a recognized setting. Allowed keys are: {', '.join(DEFAULT_CONFIG.keys())}",
                file=sys.stderr,
            )
            return False
        try:
            value = _coerce(key, value)
        except ValueError as e:
            print(f"Error: Invalid value for '{key}': {e}", file=sys.stderr)
            return False

        self._config[key] = value
        self._sources[key] = source

        user_config_data: Dict[str, Any] = {}
        if USER_CONFIG_PATH.exists():
            try:
                with open(USER_CONFIG_PATH, "r") as f:
                    loaded_config = yaml.safe_load(f)
                    if isinstance(loaded_config, dict):
                        user_config_data = loaded_config
            except (OSError, yaml.YAMLError) as e:
                print(f"Error reading user config before set: {e}", file=sys.stderr)

        user_config_data[key] = value

        try:
            USER_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
            with open(USER_CONFIG_PATH, "w") as f:
                yaml.safe_dump(user_config_data, f)
            return True
        except OSError as e:
            print(f"Error writing to user config: {e}", file=sys.stderr)
            return False

    def get_with_source(self, key: str) -> Optional[Tuple[Any, str]]:
        if key in self._config:
            return self._config[key], self._sources.get(key, "Unknown")
        return None

    def get_all_with_sources(self) -> Dict[str, Tuple[Any, str]]:
        return {
            key: (self._config.get(key, DEFAULT_CONFIG[key]), self._sources.get(key, SOURCE_DEFAULT))
            for key in DEFAULT_CONFIG
        }

    def update_from_cli(self, key: str, value: Any):
        if value is None:
            return
        if key in DEFAULT_CONFIG:
            try:
                value = _coerce(key, value)
            except ValueError as e:
                print(f"Warning: CLI value for '{key}' ('{value}') rejected: {e}", file=sys.stderr)
                return
        self._config[key] = value
        self._sources[key] = "command-line argument"

    def validate(self) -> bool:
        for key in DEFAULT_CONFIG:
            if key not in self._config:
                print(f"Validation Error: Missing configuration key: {key}")
                return False
            try:
                self._config[key] = _coerce(key, self._config[key])
            except ValueError as e:
                print(f"Validation Error: Key '{key}': {e}")
                return False
        return True
