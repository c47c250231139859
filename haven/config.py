"""
Haven application settings.

Extends the base settings with check-in engine configuration.
"""

from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """Haven-specific settings."""

    # ==========================================================================
    # Support Circle fan-out
    # ==========================================================================
    # Friends notified in parallel per check-in
    SUPPORT_FANOUT_CONCURRENCY: int = 8

    # Attempts per friend before the dispatch is parked for the retry job
    SUPPORT_FANOUT_MAX_ATTEMPTS: int = 3

    # Base delay for exponential back-off between attempts
    SUPPORT_FANOUT_BACKOFF_SECONDS: float = 0.5

    # ==========================================================================
    # Achievements
    # ==========================================================================
    ACHIEVEMENT_MAX_ATTEMPTS: int = 3
    ACHIEVEMENT_BACKOFF_SECONDS: float = 0.2

    # ==========================================================================
    # Notifications
    # ==========================================================================
    NOTIFICATION_PAGE_LIMIT_MAX: int = 100

    # Parked dispatches drained per retry job run
    RETRY_JOB_BATCH_SIZE: int = 100


settings = Settings()
