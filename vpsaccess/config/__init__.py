"""Configuration defaults and loader for vps-access-manager.

This package consolidates the backend ports and artifact paths so adapters do
not carry scattered hard-coded values.
"""

from .defaults import (
    DEFAULT_BCRYPT_ROUNDS,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONFIG_PATH,
    DEFAULT_DB_PATH,
    DEFAULT_LOG_PATH,
    DEFAULT_SWEEP_INTERVAL,
)
from .settings import (
    HTTPSettings,
    PortSettings,
    ProtocolSettings,
    RemoteSettings,
    Settings,
    SquidSettings,
    SSLSettings,
    load_settings,
    resolve_config_path,
    settings_from_dict,
)

__all__ = [
    "DEFAULT_BCRYPT_ROUNDS",
    "DEFAULT_COMMAND_TIMEOUT",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_DB_PATH",
    "DEFAULT_LOG_PATH",
    "DEFAULT_SWEEP_INTERVAL",
    "HTTPSettings",
    "PortSettings",
    "ProtocolSettings",
    "RemoteSettings",
    "Settings",
    "SquidSettings",
    "SSLSettings",
    "load_settings",
    "resolve_config_path",
    "settings_from_dict",
]
