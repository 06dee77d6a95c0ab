"""
Configuration package for the school administration backend.
"""

from school_admin.config.settings import Settings, get_settings, settings

__all__ = ['settings', 'get_settings', 'Settings']
