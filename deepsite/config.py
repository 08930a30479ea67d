"""
Config loader for deepsite.
Reads config.yaml once at startup. All other modules import from here.

String values may reference the environment as ${VAR} or ${VAR:-default};
provider credentials themselves are read straight from the environment by
the provider registry.
"""

import copy
import os
import re
import yaml
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

_config: dict | None = None

DEFAULTS: dict = {
    "server": {"host": "0.0.0.0", "port": 3000},
    "generation": {
        "default_max_tokens": 8000,
        "default_temperature": 0.7,
        "timeout_seconds": 120,
    },
    "rate_limit": {
        "ip_rate_limit": 100,
        "window_seconds": 3600,
        "sweep_interval_seconds": 300,
    },
    "storage": {"sqlite_path": ""},
    "static": {"directory": "./public"},
    "site_url": "https://localhost:3000",
    "logging": {"level": "INFO", "file": ""},
}


def _resolve_env_vars(value: str) -> str:
    """Replace ${ENV_VAR} and ${ENV_VAR:-default} patterns with environment values."""
    def replacer(match):
        var_name, default = match.group(1), match.group(3)
        return os.environ.get(var_name) or (default or "")
    return re.sub(r"\$\{(\w+)(:-([^}]*))?\}", replacer, value)


def _walk_and_resolve(obj):
    """Recursively resolve env vars in all string values."""
    if isinstance(obj, dict):
        return {k: _walk_and_resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_walk_and_resolve(v) for v in obj]
    elif isinstance(obj, str):
        return _resolve_env_vars(obj)
    return obj


def _merge(base: dict, override: dict) -> dict:
    """Deep-merge override onto a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict:
    """Load and cache config from YAML file, layered over DEFAULTS."""
    global _config
    if _config is not None:
        return _config

    env_path = os.environ.get("DEEPSITE_CONFIG")
    config_path = path or (Path(env_path) if env_path else _CONFIG_PATH)

    raw: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

    _config = _merge(DEFAULTS, _walk_and_resolve(raw))
    return _config


def get_config() -> dict:
    """Return cached config, loading if necessary."""
    if _config is None:
        return load_config()
    return _config


def reset_config() -> None:
    """Drop the cached config so the next get_config() reloads it."""
    global _config
    _config = None


def _lookup(cfg: dict, section: str, key: str):
    return cfg.get(section, {}).get(key) if section else cfg.get(key)


def config_str(cfg: dict, section: str, key: str, default: str = "") -> str:
    value = _lookup(cfg, section, key)
    if value is None or value == "":
        return default
    return str(value)


def config_int(cfg: dict, section: str, key: str, default: int) -> int:
    """Read an int setting; blank or unparseable values fall back to default."""
    value = _lookup(cfg, section, key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def config_float(cfg: dict, section: str, key: str, default: float) -> float:
    """Read a float setting; blank or unparseable values fall back to default."""
    value = _lookup(cfg, section, key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
