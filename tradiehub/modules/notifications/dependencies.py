"""
Notifications Module - FastAPI Dependencies
"""
from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from tradiehub.modules.notifications.service import Notifier, RedisNotifier


@lru_cache
def _redis_notifier() -> RedisNotifier:
    return RedisNotifier()


def get_notifier() -> Notifier:
    """Process-wide notifier; tests override this dependency with a recorder."""
    return _redis_notifier()


NotifierDep = Annotated[Notifier, Depends(get_notifier)]
