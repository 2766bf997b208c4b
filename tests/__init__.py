"""
Document mapper test suite.
Version: 1.0
"""
