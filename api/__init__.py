"""PR updater - API module.

This module provides the FastAPI application serving the GitHub webhook
endpoint, together with configuration loading and logging setup.
"""

from .config import Config, ConfigError, Settings, get_settings, load_config
from .dependencies import get_client_metrics, get_webhook_processor
from .main import create_app, run

__all__ = [
    "create_app",
    "run",
    "get_client_metrics",
    "get_webhook_processor",
    "get_settings",
    "load_config",
    "Config",
    "ConfigError",
    "Settings",
]
