"""
Session resolution: identity, profile and the advisory loading deadline.
"""

from .identity_resolver import IdentityResolver
from .session_context import SessionContext, SessionState, SessionStatus
from .timeout_guard import LoadingDeadline

__all__ = [
    "IdentityResolver",
    "SessionContext",
    "SessionState",
    "SessionStatus",
    "LoadingDeadline",
]
