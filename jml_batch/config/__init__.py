"""Configuration module for the lifecycle batch tool."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
