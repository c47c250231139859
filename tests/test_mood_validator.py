"""Unit tests for MoodValidator."""

import pytest

from haven.services.checkin.mood_validator import MoodValidator


class TestValidateScore:
    @pytest.mark.parametrize("score", [1, 2, 3, 4, 5])
    def test_valid_scores(self, score):
        assert MoodValidator.validate_score(score) == (True, None)

    @pytest.mark.parametrize("score", [0, 6, -1, 2.5, "3", None, True])
    def test_invalid_scores(self, score):
        is_valid, error = MoodValidator.validate_score(score)
        assert is_valid is False
        assert error


class TestValidateSubmission:
    def test_minimal_submission(self):
        assert MoodValidator.validate({"score": 3}) == (True, None)

    def test_full_submission(self):
        assert MoodValidator.validate({
            "score": 4,
            "activities": ["sleep", "exercise"],
            "tags": ["calm", " rested "],
            "notes": "Good run this morning",
        }) == (True, None)

    def test_unknown_activity(self):
        is_valid, error = MoodValidator.validate({"score": 4, "activities": ["gaming"]})
        assert not is_valid
        assert "gaming" in error

    def test_too_many_tags(self):
        tags = [f"tag{i}" for i in range(MoodValidator.MAX_TAGS + 1)]
        is_valid, _ = MoodValidator.validate({"score": 4, "tags": tags})
        assert not is_valid

    def test_blank_tag(self):
        is_valid, _ = MoodValidator.validate({"score": 4, "tags": ["  "]})
        assert not is_valid

    def test_notes_too_long(self):
        is_valid, _ = MoodValidator.validate({"score": 4, "notes": "x" * 501})
        assert not is_valid

    def test_score_checked_first(self):
        is_valid, error = MoodValidator.validate({"score": 9, "activities": ["gaming"]})
        assert not is_valid
        assert "between" in error


def test_score_labels():
    assert MoodValidator.score_to_label(1) == "very-bad"
    assert MoodValidator.score_to_label(5) == "great"
