"""Configuration module for the identity bridge."""
from .settings import BridgeSettings, load_settings

__all__ = ["BridgeSettings", "load_settings"]
