"""
FastAPI dependencies for Haven.

Holds the service singletons created at startup and the getters routers
use with Depends().
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.auth import JWTAuth, create_auth_dependency
from haven.config import Settings
from haven.services.achievements import AchievementEngine
from haven.services.checkin import CheckInService
from haven.services.notifications import NotificationLedger
from haven.services.social import FriendGraphReader, ActivityCounter
from haven.services.stats import UserStatsService
from haven.services.support_circle import (
    LowMoodAlertStore,
    FanOutDispatcher,
    SupportCircleNotifier,
)


# =============================================================================
# Service Instances (initialized at startup)
# =============================================================================

_jwt_auth: Optional[JWTAuth] = None

_checkin_service: Optional[CheckInService] = None
_stats_service: Optional[UserStatsService] = None
_notification_ledger: Optional[NotificationLedger] = None
_achievement_engine: Optional[AchievementEngine] = None
_support_circle_notifier: Optional[SupportCircleNotifier] = None


# =============================================================================
# Initialization Functions
# =============================================================================

def init_auth_services(settings: Settings) -> None:
    """
    Initialize the bearer token verifier.

    Args:
        settings: Application settings
    """
    global _jwt_auth

    _jwt_auth = JWTAuth(
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        access_token_expire_minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
        issuer=settings.JWT_ISSUER,
        audience=settings.JWT_AUDIENCE,
        leeway_seconds=settings.JWT_LEEWAY_SECONDS,
    )


def init_checkin_services(db: AsyncIOMotorDatabase, settings: Settings) -> None:
    """
    Initialize check-in, stats, achievement and Support Circle services.

    Args:
        db: MongoDB database connection
        settings: Application settings
    """
    global _checkin_service, _stats_service, _notification_ledger
    global _achievement_engine, _support_circle_notifier

    _checkin_service = CheckInService(db=db)
    _stats_service = UserStatsService(db=db)
    _notification_ledger = NotificationLedger(
        db=db,
        max_page_limit=settings.NOTIFICATION_PAGE_LIMIT_MAX
    )

    friend_graph = FriendGraphReader(db=db)

    _achievement_engine = AchievementEngine(
        db=db,
        notification_ledger=_notification_ledger,
        stats_service=_stats_service,
        friend_graph=friend_graph,
        activity_counter=ActivityCounter(db=db),
        max_attempts=settings.ACHIEVEMENT_MAX_ATTEMPTS,
        backoff_seconds=settings.ACHIEVEMENT_BACKOFF_SECONDS,
    )

    dispatcher = FanOutDispatcher(
        db=db,
        concurrency=settings.SUPPORT_FANOUT_CONCURRENCY,
        max_attempts=settings.SUPPORT_FANOUT_MAX_ATTEMPTS,
        backoff_seconds=settings.SUPPORT_FANOUT_BACKOFF_SECONDS,
    )

    _support_circle_notifier = SupportCircleNotifier(
        db=db,
        alert_store=LowMoodAlertStore(db=db),
        dispatcher=dispatcher,
        friend_graph=friend_graph,
        notification_ledger=_notification_ledger,
        stats_service=_stats_service,
        achievement_engine=_achievement_engine,
    )


def init_all_services(db: AsyncIOMotorDatabase, settings: Settings) -> None:
    """
    Initialize all services.

    Called once at application startup.
    """
    init_auth_services(settings)
    init_checkin_services(db, settings)


# =============================================================================
# Auth Getters
# =============================================================================

def get_jwt_auth() -> JWTAuth:
    """Get JWT auth provider instance."""
    if _jwt_auth is None:
        raise RuntimeError("Auth services not initialized. Call init_auth_services first.")
    return _jwt_auth


# Resolves the bearer token to the trusted user id
require_auth = create_auth_dependency(get_jwt_auth)


# =============================================================================
# Service Getters
# =============================================================================

def get_checkin_service() -> CheckInService:
    """Get check-in service instance."""
    if _checkin_service is None:
        raise RuntimeError("Check-in services not initialized. Call init_checkin_services first.")
    return _checkin_service


def get_stats_service() -> UserStatsService:
    """Get user stats service instance."""
    if _stats_service is None:
        raise RuntimeError("Check-in services not initialized. Call init_checkin_services first.")
    return _stats_service


def get_notification_ledger() -> NotificationLedger:
    """Get notification ledger instance."""
    if _notification_ledger is None:
        raise RuntimeError("Check-in services not initialized. Call init_checkin_services first.")
    return _notification_ledger


def get_achievement_engine() -> AchievementEngine:
    """Get achievement engine instance."""
    if _achievement_engine is None:
        raise RuntimeError("Check-in services not initialized. Call init_checkin_services first.")
    return _achievement_engine


def get_support_circle_notifier() -> SupportCircleNotifier:
    """Get Support Circle notifier instance."""
    if _support_circle_notifier is None:
        raise RuntimeError("Check-in services not initialized. Call init_checkin_services first.")
    return _support_circle_notifier
