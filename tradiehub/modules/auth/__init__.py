"""
Auth Module - caller identity and role checks.
"""
from tradiehub.modules.auth.dependencies import (
    Caller,
    ClientCaller,
    CurrentCaller,
    TradieCaller,
    UserRole,
    get_current_caller,
    require_role,
)

__all__ = [
    "Caller",
    "UserRole",
    "CurrentCaller",
    "TradieCaller",
    "ClientCaller",
    "get_current_caller",
    "require_role",
]
