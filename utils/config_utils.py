"""
utils/config_utils.py

Settings helpers shared by the command-line runners.  Settings come from a
JSON file (``config/default_settings.json`` by default); a handful of keys
are exported to the environment so that modules configured from environment
variables (logging in particular) see them.  Command-line flags override
settings, and settings override built-in defaults.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict

__all__ = [
    "DEFAULT_CONFIG",
    "load_settings",
    "apply_env_from_settings",
]

DEFAULT_CONFIG = "config/default_settings.json"

# Keys flattened into the environment before any project logger exists
_ENV_KEYS = ("OUTPUT_DIR", "DEBUG", "LOG_DIR", "AUDIT")


def load_settings(path: str) -> Dict[str, Any]:
    """Load the settings JSON at ``path``; a missing file yields ``{}``."""
    if not os.path.isfile(path):
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def apply_env_from_settings(settings: Dict[str, Any]) -> None:
    for k in _ENV_KEYS:
        if k in settings and settings[k] is not None:
            value = settings[k]
            # JSON booleans become "true"/"false" to match the env convention
            os.environ[k] = str(value).lower() if isinstance(value, bool) else str(value)
