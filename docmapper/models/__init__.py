"""
Models package for the document mapper.

Version: 1.0
"""

from .base import Model, resolve_model

__all__ = [
    "Model",
    "resolve_model",
]
