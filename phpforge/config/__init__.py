"""
Configuration for phpforge.
"""

from phpforge.config.parser import Settings, load_settings, parse_settings

__all__ = ["Settings", "load_settings", "parse_settings"]
