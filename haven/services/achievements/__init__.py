"""
Achievements.

Static catalog of rules, XP tiers and the engine that records unlocks.
"""

from haven.services.achievements.catalog import (
    ACHIEVEMENT_CATALOG,
    AchievementDefinition,
    AchievementStats,
    get_definition,
    tier_for_xp,
)
from haven.services.achievements.achievement_engine import (
    AchievementEngine,
    AchievementEvaluationError,
)

__all__ = [
    "ACHIEVEMENT_CATALOG",
    "AchievementDefinition",
    "AchievementStats",
    "AchievementEngine",
    "AchievementEvaluationError",
    "get_definition",
    "tier_for_xp",
]
