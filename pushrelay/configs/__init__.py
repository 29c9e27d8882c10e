"""
Relay configuration.

Usage:
    from pushrelay.configs import get_global_config

    config = get_global_config()
    role = config.get("relay.role", "host")
    timeout = config.get("proxy.query_timeout")
"""
from .config_manager import DEFAULT_CONFIG, ConfigManager, get_global_config, reload_global_config

__all__ = [
    "DEFAULT_CONFIG",
    "ConfigManager",
    "get_global_config",
    "reload_global_config",
]
