"""Driver settings and config persistence.

Config is stored at ~/.config/arcticfox/config.json (XDG-compliant).

Usage:
    from arcticfox.conf import DriverSettings

    settings = DriverSettings.load()
    settings.request_timeout    # seconds per read request
    settings.reconnect_delay    # seconds between reconnect attempts
    settings.auto_reconnect     # retry after open failure / fatal error
    settings.revision           # 'current' or 'legacy'
    settings.backend            # 'auto', 'pyusb' or 'hidapi'

    # Low-level config access
    from arcticfox.conf import load_config, save_config
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields

from .constants import (
    BACKENDS,
    DEFAULT_RECONNECT_DELAY_S,
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_REVISION,
    PRODUCT_ID,
    VENDOR_ID,
    get_revision,
)

log = logging.getLogger(__name__)

# =========================================================================
# Config file location (XDG-compliant)
# =========================================================================

_XDG_CONFIG = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
CONFIG_DIR = os.path.join(_XDG_CONFIG, 'arcticfox')
CONFIG_PATH = os.path.join(CONFIG_DIR, 'config.json')

# Key under which DriverSettings live in config.json
SETTINGS_KEY = 'driver'


# =========================================================================
# Low-level config persistence
# =========================================================================

def load_config() -> dict:
    """Load user config from disk. Returns empty dict on missing/corrupt file."""
    try:
        with open(CONFIG_PATH, 'r') as f:
            return json.load(f)
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return {}


def save_config(config: dict):
    """Save user config to disk."""
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(CONFIG_PATH, 'w') as f:
        json.dump(config, f, indent=2)


# =========================================================================
# Driver settings
# =========================================================================

@dataclass
class DriverSettings:
    """Connection and request policy for ``ArcticFoxDevice``."""
    vid: int = VENDOR_ID
    pid: int = PRODUCT_ID
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_S
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY_S
    auto_reconnect: bool = True
    revision: str = DEFAULT_REVISION.name
    backend: str = 'auto'

    def __post_init__(self):
        # Unknown revision names fail early, not on first read
        get_revision(self.revision)
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be > 0, got {self.request_timeout}")
        if self.reconnect_delay < 0:
            raise ValueError(f"reconnect_delay must be >= 0, got {self.reconnect_delay}")
        if self.backend not in BACKENDS:
            raise ValueError(
                f"Unknown backend {self.backend!r} (choose from {', '.join(BACKENDS)})"
            )

    @classmethod
    def from_dict(cls, data: dict) -> DriverSettings:
        """Build from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def load(cls) -> DriverSettings:
        """Load saved settings, falling back to defaults on bad values."""
        saved = load_config().get(SETTINGS_KEY, {})
        if not isinstance(saved, dict):
            return cls()
        try:
            return cls.from_dict(saved)
        except (TypeError, ValueError, KeyError) as e:
            log.warning("Ignoring invalid saved driver settings: %s", e)
            return cls()

    def save(self) -> None:
        """Persist to config.json, keeping other top-level keys."""
        config = load_config()
        config[SETTINGS_KEY] = self.to_dict()
        save_config(config)
        log.debug("Driver settings saved to %s", CONFIG_PATH)
