"""
Notification services.

Handles in-app notification creation, read state and retrieval.
"""

from haven.services.notifications.notification_ledger import NotificationLedger

__all__ = ["NotificationLedger"]
