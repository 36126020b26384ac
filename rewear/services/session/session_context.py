"""
Explicitly-owned session state.

One resolver owns a SessionContext and is its only writer; any number of
readers subscribe to committed snapshots.
"""

from collections.abc import Callable
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from rewear.infrastructure.observability.logging import get_logger
from rewear.models.domain.identity_domain import Identity, UserProfile

logger = get_logger(__name__)


class SessionStatus(StrEnum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    INCOMPLETE = "incomplete"
    READY = "ready"
    ERROR = "error"


class SessionState(BaseModel):
    """Immutable snapshot of the session as last committed."""

    model_config = ConfigDict(frozen=True)

    identity: Identity | None = None
    profile: UserProfile | None = None
    is_loading: bool = True
    is_profile_loading: bool = False
    is_delayed: bool = False
    error: str | None = None

    @property
    def status(self) -> SessionStatus:
        if self.error:
            return SessionStatus.ERROR
        if self.is_loading:
            return SessionStatus.LOADING
        if self.identity is None:
            return SessionStatus.UNAUTHENTICATED
        if self.profile is None:
            return SessionStatus.INCOMPLETE
        return SessionStatus.READY

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def has_complete_profile(self) -> bool:
        return self.profile is not None and self.profile.is_complete()


SessionListener = Callable[[SessionState], None]


class SessionContext:
    def __init__(self, initial: SessionState | None = None):
        self._state = initial or SessionState()
        self._listeners: list[SessionListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener for committed snapshots; returns the unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def commit(self, **changes) -> SessionState:
        """Replace the snapshot with ``changes`` applied and notify listeners."""
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error("Session listener failed", error=str(e))
        return self._state
