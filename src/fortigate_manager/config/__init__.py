"""Configuration loading."""
from .settings import AccessPolicy, ConnectionConfig, Settings

__all__ = ["AccessPolicy", "ConnectionConfig", "Settings"]
