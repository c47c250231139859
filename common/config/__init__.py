"""
Configuration - environment-driven settings shared by the API and the jobs.
"""

from common.config.base_settings import BaseAppSettings

__all__ = ["BaseAppSettings"]
