"""Configuration module for realm-sync."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
