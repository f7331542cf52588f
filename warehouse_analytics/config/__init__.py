"""
Warehouse Sales Analytics
Configuration Module
"""
from .settings import Settings, get_settings
from .logging import configure_logging, load_context

__all__ = ["Settings", "get_settings", "configure_logging", "load_context"]
