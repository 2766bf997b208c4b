"""
Configuration package for the document mapper.

Version: 1.0
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
