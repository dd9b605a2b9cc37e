from .guard import AuthGuard, require_user, require_user_csrf
from .session import extract_access_token, get_session_identity, resolve_user_from_token

__all__ = [
    "AuthGuard",
    "extract_access_token",
    "get_session_identity",
    "require_user",
    "require_user_csrf",
    "resolve_user_from_token",
]
