"""Settings and config persistence for ufbright.

Config is stored at ~/.config/ufbright/config.json (XDG-compliant).  Only
device selection is kept there; brightness always comes from the display.

Precedence for each setting: command line > environment > config file >
built-in default.

Usage:
    from ufbright.conf import resolve_settings

    settings = resolve_settings(model=args.model)
    settings.profile        # ModelProfile for the selected display
    settings.match          # 'name' or 'ids'
    settings.backend        # 'hid' or 'pyusb'
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from .constants import DEFAULT_MODEL, MODEL_PROFILES, ModelProfile, get_profile
from .device_detector import MATCH_STRATEGIES
from .hid_transport import TRANSPORTS

log = logging.getLogger(__name__)

# =========================================================================
# Config file location (XDG-compliant)
# =========================================================================

_XDG_CONFIG = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
CONFIG_DIR = os.path.join(_XDG_CONFIG, 'ufbright')
CONFIG_PATH = os.path.join(CONFIG_DIR, 'config.json')

ENV_MODEL = 'UFBRIGHT_MODEL'
ENV_MATCH = 'UFBRIGHT_MATCH'
ENV_BACKEND = 'UFBRIGHT_BACKEND'

DEFAULT_MATCH = 'name'
DEFAULT_BACKEND = 'hid'


class ConfigError(ValueError):
    """A setting names an unknown model, match strategy or backend."""


# =========================================================================
# Low-level config persistence
# =========================================================================

def load_config() -> dict:
    """Load user config from disk. Returns empty dict on missing/corrupt file."""
    try:
        with open(CONFIG_PATH, 'r') as f:
            config = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return {}
    if not isinstance(config, dict):
        log.warning("Ignoring %s: not a JSON object", CONFIG_PATH)
        return {}
    return config


def save_config(config: dict):
    """Save user config to disk."""
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(CONFIG_PATH, 'w') as f:
        json.dump(config, f, indent=2)


def save_model(name: str):
    """Persist the selected display model."""
    profile = _lookup_model(name)
    config = load_config()
    config['model'] = profile.name
    save_config(config)


# =========================================================================
# Resolved settings
# =========================================================================

@dataclass(frozen=True)
class Settings:
    profile: ModelProfile
    match: str = DEFAULT_MATCH
    backend: str = DEFAULT_BACKEND


def _lookup_model(name: str) -> ModelProfile:
    try:
        return get_profile(name)
    except KeyError:
        raise ConfigError(
            f"unknown model {name!r} (choose from {', '.join(MODEL_PROFILES)})") from None


def _pick(cli_value: Optional[str], env_name: str, config: dict, key: str, default: str) -> str:
    for value in (cli_value, os.environ.get(env_name), config.get(key)):
        if value:
            return str(value).strip().lower()
    return default


def resolve_settings(
    model: Optional[str] = None,
    match: Optional[str] = None,
    backend: Optional[str] = None,
) -> Settings:
    """Combine command-line values with environment, config and defaults.

    Raises:
        ConfigError: A resolved value is not recognised.
    """
    config = load_config()

    profile = _lookup_model(_pick(model, ENV_MODEL, config, 'model', DEFAULT_MODEL))

    match = _pick(match, ENV_MATCH, config, 'match', DEFAULT_MATCH)
    if match not in MATCH_STRATEGIES:
        raise ConfigError(
            f"unknown match strategy {match!r} (choose from {', '.join(MATCH_STRATEGIES)})")

    backend = _pick(backend, ENV_BACKEND, config, 'backend', DEFAULT_BACKEND)
    if backend not in TRANSPORTS:
        raise ConfigError(
            f"unknown backend {backend!r} (choose from {', '.join(TRANSPORTS)})")

    log.debug("Settings: model=%s match=%s backend=%s", profile.name, match, backend)
    return Settings(profile=profile, match=match, backend=backend)
