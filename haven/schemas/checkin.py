"""
Pydantic models for Check-in request validation.

Range and vocabulary checks live in MoodValidator so service callers get
the same rules; these models only shape the request body.
"""

from typing import Optional, List
from pydantic import BaseModel, Field, StrictInt


# =============================================================================
# Request Schemas
# =============================================================================

class CheckInRequest(BaseModel):
    """POST /api/checkin"""
    # Strict: JSON true or "4" must not coerce into a score
    score: StrictInt = Field(..., description="1-5 scale")
    activities: Optional[List[str]] = Field(None, description="Mood factors")
    tags: Optional[List[str]] = None
    notes: Optional[str] = None

    def to_mood_input(self):
        """Fields that were sent; omitted ones keep their stored value on update."""
        return self.model_dump(include={"score", "activities", "tags", "notes"}, exclude_none=True)


class UpdateTodayRequest(CheckInRequest):
    """PUT /api/checkin/today"""
    reason: Optional[str] = Field(None, max_length=200, description="Why the mood changed")
