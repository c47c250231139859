"""
Achievement catalog.

Static, declarative rules. Each achievement is a predicate over the
user's aggregate stats; the catalog never changes at runtime.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple


@dataclass(frozen=True)
class AchievementStats:
    """Aggregate figures the achievement predicates read."""
    current_streak: int = 0
    longest_streak: int = 0
    total_check_ins: int = 0
    good_mood_streak: int = 0
    moods_helped: int = 0
    mood_recoveries: int = 0
    friend_count: int = 0
    post_count: int = 0
    message_count: int = 0

    @classmethod
    def from_stats(
        cls,
        stats: Dict[str, Any],
        friend_count: int = 0,
        post_count: int = 0,
        message_count: int = 0
    ) -> "AchievementStats":
        """
        Build from a userstats document plus collaborator counts.
        """
        return cls(
            current_streak=stats.get("currentStreak", 0),
            longest_streak=stats.get("longestStreak", 0),
            total_check_ins=stats.get("totalCheckIns", 0),
            good_mood_streak=stats.get("goodMoodStreak", 0),
            moods_helped=stats.get("moodsHelped", 0),
            mood_recoveries=stats.get("moodRecoveries", 0),
            friend_count=friend_count,
            post_count=post_count,
            message_count=message_count,
        )


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    name: str
    description: str
    icon: str
    category: str
    xp: int
    predicate: Callable[[AchievementStats], bool]

    @property
    def tier(self) -> str:
        return tier_for_xp(self.xp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "category": self.category,
            "xp": self.xp,
            "tier": self.tier,
        }


def tier_for_xp(xp: int) -> str:
    """
    Display tier for an XP value.

    < 50 bronze, 50-149 silver, >= 150 gold.
    """
    if xp < 50:
        return "bronze"
    if xp < 150:
        return "silver"
    return "gold"


ACHIEVEMENT_CATALOG: Tuple[AchievementDefinition, ...] = (
    # Mood check-ins
    AchievementDefinition(
        id="first-checkin",
        name="First Check-in",
        description="Completed your first daily mood check-in",
        icon="🌟",
        category="mood",
        xp=10,
        predicate=lambda s: s.total_check_ins >= 1,
    ),
    AchievementDefinition(
        id="streak-7",
        name="Week Warrior",
        description="Checked in for 7 consecutive days",
        icon="🔥",
        category="mood",
        xp=50,
        predicate=lambda s: s.current_streak >= 7,
    ),
    AchievementDefinition(
        id="streak-30",
        name="Monthly Master",
        description="Checked in for 30 consecutive days",
        icon="👑",
        category="mood",
        xp=200,
        predicate=lambda s: s.current_streak >= 30,
    ),
    # Support Circle
    AchievementDefinition(
        id="mood-helper-1",
        name="Mood Helper",
        description="Helped a friend feel better",
        icon="💝",
        category="social",
        xp=25,
        predicate=lambda s: s.moods_helped >= 1,
    ),
    AchievementDefinition(
        id="mood-helper-5",
        name="Caring Friend",
        description="Helped friends feel better 5 times",
        icon="🤗",
        category="social",
        xp=75,
        predicate=lambda s: s.moods_helped >= 5,
    ),
    AchievementDefinition(
        id="mood-helper-10",
        name="Support Champion",
        description="Helped friends feel better 10 times",
        icon="🏆",
        category="social",
        xp=150,
        predicate=lambda s: s.moods_helped >= 10,
    ),
    AchievementDefinition(
        id="mood-helper-25",
        name="Mental Health Hero",
        description="Helped friends feel better 25 times",
        icon="🦸",
        category="social",
        xp=300,
        predicate=lambda s: s.moods_helped >= 25,
    ),
    AchievementDefinition(
        id="first-friend",
        name="Making Connections",
        description="Added your first support buddy",
        icon="🤝",
        category="social",
        xp=15,
        predicate=lambda s: s.friend_count >= 1,
    ),
    AchievementDefinition(
        id="five-friends",
        name="Support Network",
        description="Built a network of 5 support buddies",
        icon="👥",
        category="social",
        xp=50,
        predicate=lambda s: s.friend_count >= 5,
    ),
    # Community
    AchievementDefinition(
        id="first-post",
        name="Voice Found",
        description="Created your first forum post",
        icon="📝",
        category="community",
        xp=20,
        predicate=lambda s: s.post_count >= 1,
    ),
    AchievementDefinition(
        id="first-message",
        name="Reaching Out",
        description="Sent your first message to a support buddy",
        icon="💬",
        category="community",
        xp=10,
        predicate=lambda s: s.message_count >= 1,
    ),
    # Personal
    AchievementDefinition(
        id="mood-improved",
        name="Rising Up",
        description="Went from a low mood to a good one",
        icon="🌈",
        category="personal",
        xp=30,
        predicate=lambda s: s.mood_recoveries >= 1,
    ),
    AchievementDefinition(
        id="consistent-good",
        name="Positive Streak",
        description="Maintained a good mood for 5 consecutive days",
        icon="☀️",
        category="personal",
        xp=100,
        predicate=lambda s: s.good_mood_streak >= 5,
    ),
)

_BY_ID: Dict[str, AchievementDefinition] = {d.id: d for d in ACHIEVEMENT_CATALOG}


def get_definition(achievement_id: str) -> Optional[AchievementDefinition]:
    """Look up a catalog entry by id."""
    return _BY_ID.get(achievement_id)
