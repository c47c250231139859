"""
Support Circle

Low-mood alerts to accepted friends and credit for recoveries.
"""

from haven.services.support_circle.alert_store import LowMoodAlertStore
from haven.services.support_circle.fan_out import FanOutDispatcher, FanOutReport
from haven.services.support_circle.notifier import SupportCircleNotifier

__all__ = [
    "LowMoodAlertStore",
    "FanOutDispatcher",
    "FanOutReport",
    "SupportCircleNotifier",
]
