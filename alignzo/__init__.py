"""
Alignzo Backend Core

Caching and security monitoring for the Alignzo work-tracking application.
"""

__version__ = "0.4.0"
