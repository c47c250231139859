"""
Derived user stats.
"""

from haven.services.stats.stats_service import UserStatsService

__all__ = ["UserStatsService"]
