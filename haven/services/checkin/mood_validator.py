"""
Mood input validation.

Validates a mood submission before it is written.
"""

from typing import Tuple, Optional, Dict, Any, List


class MoodValidator:
    """
    Validates mood score, activities, tags and notes.
    """

    SCORE_RANGE: Tuple[int, int] = (1, 5)

    SCORE_LABELS: Dict[int, str] = {
        1: "very-bad",
        2: "bad",
        3: "okay",
        4: "good",
        5: "great",
    }

    ACTIVITIES = [
        "sleep",
        "exercise",
        "social",
        "work",
        "health",
        "relationships",
        "weather",
        "other",
    ]

    MAX_TAGS = 10
    MAX_TAG_LENGTH = 30
    MAX_NOTES_LENGTH = 500

    @classmethod
    def validate_score(cls, score: Any) -> Tuple[bool, Optional[str]]:
        """
        Validate the mood score.

        Args:
            score: Submitted score

        Returns:
            tuple of (is_valid, error_message)
        """
        # bool is an int subclass; True must not pass as a score of 1
        if isinstance(score, bool) or not isinstance(score, int):
            return False, "Mood score must be an integer"

        min_val, max_val = cls.SCORE_RANGE
        if score < min_val or score > max_val:
            return False, f"Mood score must be between {min_val} and {max_val}"

        return True, None

    @classmethod
    def validate_activities(cls, activities: Optional[List[Any]]) -> Tuple[bool, Optional[str]]:
        if activities is None:
            return True, None

        if not isinstance(activities, list):
            return False, "Activities must be a list"

        unknown = [a for a in activities if a not in cls.ACTIVITIES]
        if unknown:
            return False, f"Unknown activities: {', '.join(str(a) for a in unknown)}"

        return True, None

    @classmethod
    def validate_tags(cls, tags: Optional[List[Any]]) -> Tuple[bool, Optional[str]]:
        if tags is None:
            return True, None

        if not isinstance(tags, list):
            return False, "Tags must be a list"

        if len(tags) > cls.MAX_TAGS:
            return False, f"No more than {cls.MAX_TAGS} tags are allowed"

        for tag in tags:
            if not isinstance(tag, str) or not tag.strip():
                return False, "Tags must be non-empty strings"
            if len(tag.strip()) > cls.MAX_TAG_LENGTH:
                return False, f"Tags cannot exceed {cls.MAX_TAG_LENGTH} characters"

        return True, None

    @classmethod
    def validate_notes(cls, notes: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate optional notes field.

        Rules:
            - Max 500 characters
            - Trimmed whitespace
        """
        if notes is None:
            return True, None

        if not isinstance(notes, str):
            return False, "Notes must be a string"

        if len(notes.strip()) > cls.MAX_NOTES_LENGTH:
            return False, f"Notes cannot exceed {cls.MAX_NOTES_LENGTH} characters"

        return True, None

    @classmethod
    def validate(cls, mood_input: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        """
        Validate a full mood submission.

        Args:
            mood_input: dict with score and optional activities, tags, notes

        Returns:
            tuple of (is_valid, error_message) for the first failing field
        """
        checks = (
            cls.validate_score(mood_input.get("score")),
            cls.validate_activities(mood_input.get("activities")),
            cls.validate_tags(mood_input.get("tags")),
            cls.validate_notes(mood_input.get("notes")),
        )
        for is_valid, error in checks:
            if not is_valid:
                return False, error

        return True, None

    @classmethod
    def score_to_label(cls, score: int) -> str:
        """Map a score to its mood label."""
        return cls.SCORE_LABELS.get(score, "okay")
