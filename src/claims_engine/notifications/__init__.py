"""Decision notifications."""

from claims_engine.notifications.dispatcher import (
    BackgroundNotifier,
    DecisionNotification,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    build_decision_notification,
)

__all__ = [
    "BackgroundNotifier",
    "DecisionNotification",
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "build_decision_notification",
]
