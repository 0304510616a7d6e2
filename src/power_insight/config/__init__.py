"""Configuration management for Power Insight."""

from power_insight.config.schema import AppConfig
from power_insight.config.manager import ConfigManager

__all__ = ["AppConfig", "ConfigManager"]
