"""
Utility Module
Provides date parsing, BSON type coercion and dot-notation path helpers.

Version: 1.0.0
"""

# Version information
__version__ = '1.0.0'
