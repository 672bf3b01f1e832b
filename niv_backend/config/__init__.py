"""Configuration: settings, logging and request context."""
from niv_backend.config.settings import ConfigurationError, Settings, get_settings
from niv_backend.config.logging_config import get_logger, setup_logging

__all__ = [
    "ConfigurationError",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
