"""Configuration management for branchpilot.

Example usage:
    from branchpilot.config import load_config

    config = load_config("config.yaml")
    organization = config.github.organization
"""

from .exceptions import (
    ConfigurationError,
    ConfigurationFileError,
    ConfigurationValidationError,
)
from .loader import (
    ConfigurationLoader,
    get_config,
    get_loader,
    is_config_loaded,
    load_config,
    reload_config,
)
from .models import (
    BranchesConfig,
    CatalogConfig,
    Config,
    GitHubConfig,
    LogLevel,
    SearchConfig,
    SystemConfig,
    WebhooksConfig,
)

__all__ = [
    "BranchesConfig",
    "CatalogConfig",
    "Config",
    "ConfigurationError",
    "ConfigurationFileError",
    "ConfigurationLoader",
    "ConfigurationValidationError",
    "GitHubConfig",
    "LogLevel",
    "SearchConfig",
    "SystemConfig",
    "WebhooksConfig",
    "get_config",
    "get_loader",
    "is_config_loaded",
    "load_config",
    "reload_config",
]
