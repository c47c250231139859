"""
Haven request schemas.
"""

from haven.schemas.checkin import CheckInRequest, UpdateTodayRequest

__all__ = ["CheckInRequest", "UpdateTodayRequest"]
