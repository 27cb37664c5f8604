"""
Notifications Module - Event Dispatch

Marketplace workflows emit events that downstream delivery (email, SMS,
push) consumes from Redis pub/sub. Publishing happens only after the
workflow transaction has committed and never fails the workflow.
"""
from enum import Enum
from typing import Any, Protocol

import orjson
import redis.asyncio as redis

from tradiehub.core.config import settings
from tradiehub.core.logging import get_logger

logger = get_logger(__name__)

CHANNEL_PREFIX = "marketplace"


class MarketplaceEvent(str, Enum):
    """Events published to downstream delivery."""
    NEW_JOB_POSTED = "new_job_posted"
    APPLICATION_RECEIVED = "application_received"
    APPLICATION_SELECTED = "application_selected"
    APPLICATION_REJECTED = "application_rejected"
    JOB_ASSIGNED = "job_assigned"
    JOB_EXPIRED = "job_expired"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    APPLICATION_WITHDRAWN = "application_withdrawn"
    JOB_CANCELLED = "job_cancelled"


class Notifier(Protocol):
    async def notify(self, event_type: MarketplaceEvent, payload: dict[str, Any]) -> None:
        ...


class RedisNotifier:
    """Publish events as JSON on `marketplace:<event_type>` channels."""

    def __init__(self, redis_url: str | None = None):
        self._redis = redis.from_url(redis_url or settings.redis_url)

    async def notify(self, event_type: MarketplaceEvent, payload: dict[str, Any]) -> None:
        channel = f"{CHANNEL_PREFIX}:{event_type.value}"
        message = orjson.dumps({"event": event_type.value, "payload": payload}, default=str)
        await self._redis.publish(channel, message)

    async def close(self) -> None:
        await self._redis.aclose()


class NotificationDispatcher:
    """
    Collects events during a workflow and publishes them after commit.

    Usage:
        dispatcher = NotificationDispatcher(notifier)
        async with atomic(db):
            ...
            dispatcher.add(MarketplaceEvent.JOB_ASSIGNED, {...})
        await dispatcher.flush()
    """

    def __init__(self, notifier: Notifier):
        self._notifier = notifier
        self._pending: list[tuple[MarketplaceEvent, dict[str, Any]]] = []

    def add(self, event_type: MarketplaceEvent, payload: dict[str, Any]) -> None:
        self._pending.append((event_type, payload))

    def discard(self) -> None:
        self._pending.clear()

    async def flush(self) -> int:
        """Publish queued events; returns how many were delivered."""
        pending, self._pending = self._pending, []
        delivered = 0
        for event_type, payload in pending:
            try:
                await self._notifier.notify(event_type, payload)
                delivered += 1
            except Exception:
                logger.exception("Notification publish failed", event_type=event_type.value)
        return delivered
