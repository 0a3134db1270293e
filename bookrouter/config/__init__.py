"""Configuration module -- exports Settings, RoutingThresholds and load_config."""

from bookrouter.config.loader import load_config
from bookrouter.config.settings import RoutingThresholds, Settings

__all__ = ["RoutingThresholds", "Settings", "load_config"]
