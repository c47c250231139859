"""
Streak calculation.

Pure functions over a user's entry date keys. Nothing here touches the
database, so the stored stats can always be rebuilt from the entries.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Set

from haven.services.checkin.day_boundary import parse_day_key, shift_day_key

GOOD_MOOD_THRESHOLD = 4


@dataclass(frozen=True)
class StreakState:
    """Derived streak figures for one user."""
    current_streak: int = 0
    longest_streak: int = 0
    total_check_ins: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "totalCheckIns": self.total_check_ins,
        }


def calculate_streak(date_keys: Iterable[str], today: str) -> StreakState:
    """
    Calculate the streak state from entry date keys.

    Args:
        date_keys: "YYYY-MM-DD" keys of the user's entries (duplicates allowed)
        today: Date key of the current day

    Returns:
        StreakState with current streak, longest run and total check-ins

    Algorithm:
        Walk backward from today one day at a time. A day with an entry
        extends the streak. A missing today is tolerated once; any other
        missing day ends the walk.
    """
    keys = set(date_keys)
    current = _walk_back(keys, today)
    longest = max(_longest_run(keys), current)

    return StreakState(
        current_streak=current,
        longest_streak=longest,
        total_check_ins=len(keys),
    )


def calculate_good_mood_streak(entries: Iterable[Dict[str, Any]], today: str) -> int:
    """
    Count consecutive days ending today (or yesterday) with a good mood.

    Args:
        entries: Entry documents with "dateKey" and "score"
        today: Date key of the current day

    Returns:
        Length of the good-mood streak
    """
    keys = {
        entry["dateKey"]
        for entry in entries
        if entry.get("score", 0) >= GOOD_MOOD_THRESHOLD
    }
    return _walk_back(keys, today)


def _walk_back(keys: Set[str], today: str) -> int:
    streak = 0
    offset = 0
    cursor = today

    while True:
        if cursor in keys:
            streak += 1
        elif offset > 0:
            break
        offset += 1
        cursor = shift_day_key(cursor, -1)

    return streak


def _longest_run(keys: Set[str]) -> int:
    if not keys:
        return 0

    days = sorted(parse_day_key(key) for key in keys)
    longest = run = 1

    for previous, current in zip(days, days[1:]):
        if (current - previous).days == 1:
            run += 1
            longest = max(longest, run)
        else:
            run = 1

    return longest

