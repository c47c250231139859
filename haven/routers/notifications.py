"""
Notification API endpoints.

Handles in-app notification retrieval and management.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from common.utils import success_response
from haven.dependencies import require_auth, get_notification_ledger
from haven.services.notifications import NotificationLedger


router = APIRouter(prefix="/notifications", tags=["Notifications"])


# =============================================================================
# Notification Endpoints
# =============================================================================

@router.get("")
async def get_notifications(
    user_id: Annotated[str, Depends(require_auth)],
    ledger: Annotated[NotificationLedger, Depends(get_notification_ledger)],
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    snapshotId: Optional[str] = Query(default=None),
    unreadOnly: bool = Query(default=False)
):
    """
    Get notifications for the current user, newest first.

    Args:
        page: 1-based page number
        limit: Page size (1-100, default 20)
        snapshotId: Returned with the first page; pass it back for later pages
        unreadOnly: If true, only return unread notifications

    Returns:
        Page of notifications with pagination info
    """
    result = await ledger.list(
        user_id=user_id,
        page=page,
        limit=limit,
        snapshot_id=snapshotId,
        unread_only=unreadOnly
    )

    return success_response(result)


@router.get("/since")
async def get_notifications_since(
    user_id: Annotated[str, Depends(require_auth)],
    ledger: Annotated[NotificationLedger, Depends(get_notification_ledger)],
    cursor: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100)
):
    """
    Get notifications created after a cursor, oldest first.

    Call without a cursor once to get the starting cursor.
    """
    result = await ledger.list_since(user_id=user_id, cursor_id=cursor, limit=limit)

    return success_response(result)


@router.get("/count")
async def get_unread_count(
    user_id: Annotated[str, Depends(require_auth)],
    ledger: Annotated[NotificationLedger, Depends(get_notification_ledger)],
):
    """
    Get count of unread notifications.
    """
    count = await ledger.unread_count(user_id)

    return success_response({"unread": count})


@router.put("/read-all")
async def mark_all_as_read(
    user_id: Annotated[str, Depends(require_auth)],
    ledger: Annotated[NotificationLedger, Depends(get_notification_ledger)],
):
    """
    Mark all notifications as read.
    """
    count = await ledger.mark_all_read(user_id)

    return success_response({
        "message": f"Marked {count} notifications as read",
        "count": count
    })


@router.put("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    user_id: Annotated[str, Depends(require_auth)],
    ledger: Annotated[NotificationLedger, Depends(get_notification_ledger)],
):
    """
    Mark a notification as read.
    """
    notification = await ledger.mark_read(notification_id, user_id)

    return success_response({"notification": notification})


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    user_id: Annotated[str, Depends(require_auth)],
    ledger: Annotated[NotificationLedger, Depends(get_notification_ledger)],
):
    """
    Delete a notification.
    """
    await ledger.delete(notification_id, user_id)

    return success_response({"message": "Notification deleted"})
