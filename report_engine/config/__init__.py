"""Configuration module for the Competitive Report Engine."""

from report_engine.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
