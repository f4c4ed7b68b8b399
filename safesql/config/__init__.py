"""Configuration management for SafeSQL."""

from safesql.config.models import (
    DatabaseType,
    DatabaseConfig,
    ConnectionPolicy,
    SafeSQLConfig,
    EnvironmentSettings,
)
from safesql.config.parser import (
    ConfigParser,
    load_config,
    validate_config_file,
    create_sample_config,
)

__all__ = [
    # Models
    "DatabaseType",
    "DatabaseConfig",
    "ConnectionPolicy",
    "SafeSQLConfig",
    "EnvironmentSettings",
    # Parser
    "ConfigParser",
    "load_config",
    "validate_config_file",
    "create_sample_config",
]
