from tradiehub.core.config import settings
from tradiehub.core.database import atomic, get_db
from tradiehub.core.security import create_access_token, verify_token

__all__ = ["settings", "get_db", "atomic", "create_access_token", "verify_token"]
