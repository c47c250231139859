"""
Check-in System

Daily mood check-ins with one entry per user per day and streak tracking.
"""

from haven.services.checkin.checkin_service import CheckInService
from haven.services.checkin.mood_validator import MoodValidator
from haven.services.checkin.streak_calculator import (
    StreakState,
    calculate_streak,
    calculate_good_mood_streak,
)

__all__ = [
    "CheckInService",
    "MoodValidator",
    "StreakState",
    "calculate_streak",
    "calculate_good_mood_streak",
]
