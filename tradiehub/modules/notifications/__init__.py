"""
Notifications Module - marketplace event dispatch over Redis pub/sub.
"""
from tradiehub.modules.notifications.service import (
    MarketplaceEvent,
    NotificationDispatcher,
    Notifier,
    RedisNotifier,
)

__all__ = ["MarketplaceEvent", "Notifier", "RedisNotifier", "NotificationDispatcher"]
