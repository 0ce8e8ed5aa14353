"""Configuration loading for the DaaS pipeline.

Configuration is loaded from a single ``config/config.yaml`` file with
``${VAR}`` / ``${VAR:-default}`` environment expansion.

Usage:
    >>> from config import load_config, get_config
    >>> config = load_config()
    >>> config.broker.genesis_topic
    'genesis'
"""

from config.config import (
    DEFAULT_CONFIG_FILE,
    BrokerSettings,
    DaasConfig,
    StorageSettings,
    config_from_dict,
    get_config,
    load_config,
    load_yaml,
    reset_config,
    set_config,
)

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "BrokerSettings",
    "DaasConfig",
    "StorageSettings",
    "config_from_dict",
    "get_config",
    "load_config",
    "load_yaml",
    "reset_config",
    "set_config",
]
