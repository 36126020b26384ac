"""
Identity resolver.

Resolves the signed-in identity and its profile into a SessionContext, keeps
it current on auth-change notifications and discards results that arrive
after they stopped being relevant.

Staleness is tracked with a generation counter: every event that changes who
is signed in (sign-in, sign-out, reload, unmount) bumps the generation, and a
fetch only commits if the generation it started under is still current.
"""

import asyncio

from rewear.config import settings
from rewear.infrastructure.observability.logging import get_logger
from rewear.models.domain.identity_domain import Identity, UserProfile
from rewear.services.contracts import (
    AuthEvent,
    AuthProvider,
    AuthProviderError,
    RecordNotFoundError,
    RelationalStore,
)
from rewear.services.session.session_context import SessionContext, SessionState
from rewear.services.session.timeout_guard import LoadingDeadline

logger = get_logger(__name__)

PROFILE_TABLE = "users_profiles"


class IdentityResolver:
    def __init__(
        self,
        auth_provider: AuthProvider,
        store: RelationalStore,
        context: SessionContext | None = None,
        *,
        slow_after_s: float | None = None,
    ):
        self._auth = auth_provider
        self._store = store
        self.context = context or SessionContext()
        self._deadline = LoadingDeadline(
            slow_after_s if slow_after_s is not None else settings.SESSION_SLOW_AFTER_SECONDS,
            self._on_deadline,
        )
        self._mounted = False
        self._generation = 0
        self._resolution = 0
        self._unsubscribe = None
        self._profile_task: asyncio.Task | None = None

    @property
    def state(self) -> SessionState:
        return self.context.state

    @property
    def mounted(self) -> bool:
        return self._mounted

    async def __aenter__(self) -> "IdentityResolver":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Lifecycle
    async def start(self) -> SessionState:
        """Mount, subscribe to auth changes and run the initial resolution."""
        if self._mounted:
            return self.state

        self._mounted = True
        self._unsubscribe = self._auth.subscribe(self._on_auth_change)
        await self._resolve()
        return self.state

    async def reload(self) -> SessionState:
        """Re-run resolution from scratch, e.g. after the UI offered a retry."""
        if not self._mounted:
            return self.state

        self._invalidate()
        self.context.commit(error=None)
        await self._resolve()
        return self.state

    def stop(self) -> None:
        """Unmount; any result still in flight is dropped when it lands."""
        if not self._mounted:
            return

        self._mounted = False
        self._invalidate()
        self._deadline.disarm()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.debug("Identity resolver stopped")

    def _invalidate(self) -> None:
        self._generation += 1
        if self._profile_task is not None and not self._profile_task.done():
            self._profile_task.cancel()
        self._profile_task = None

    def _is_current(self, generation: int) -> bool:
        return self._mounted and generation == self._generation

    # ------------------------------------------------------------------
    # Resolution
    async def _resolve(self) -> None:
        generation = self._generation
        self._resolution += 1
        resolution = self._resolution
        self.context.commit(is_loading=True, is_delayed=False)
        self._deadline.arm()

        try:
            try:
                identity = await self._auth.get_current_identity()
            except Exception as e:
                logger.error("Failed to resolve current identity", error=str(e))
                if self._is_current(generation):
                    self.context.commit(error="Failed to initialize session")
                return

            if not self._is_current(generation):
                logger.debug("Discarding stale identity resolution")
                return

            if identity is None:
                self.context.commit(identity=None, profile=None, is_profile_loading=False)
                logger.info("No signed-in user")
                return

            self.context.commit(identity=identity)
            await self._load_profile(identity, generation)

        finally:
            # A superseded resolution leaves loading to the one that replaced it
            if self._mounted and resolution == self._resolution:
                self._finish_loading()

    def _finish_loading(self) -> None:
        self._deadline.disarm()
        self.context.commit(is_loading=False, is_delayed=False)

    def _on_deadline(self) -> None:
        if self._mounted and self.state.is_loading:
            logger.warning("Session resolution is taking longer than expected")
            self.context.commit(is_delayed=True)

    async def _load_profile(self, identity: Identity, generation: int) -> None:
        if not self._is_current(generation):
            return

        self.context.commit(is_profile_loading=True)
        error = None
        profile = self.state.profile

        try:
            row = await self._store.fetch_one(PROFILE_TABLE, {"id": identity.subject})
            profile = UserProfile.from_row(row)
        except RecordNotFoundError:
            logger.info("Profile not found, onboarding incomplete", user_id=identity.subject)
            profile = None
        except Exception as e:
            logger.error("Error fetching user profile", user_id=identity.subject, error=str(e))
            error = "Failed to fetch user profile"

        if not self._is_current(generation):
            logger.debug("Discarding stale profile result", user_id=identity.subject)
            return

        self.context.commit(profile=profile, error=error, is_profile_loading=False)
        if error is None:
            logger.info(
                "Profile resolved",
                user_id=identity.subject,
                has_profile=profile is not None,
            )

    # ------------------------------------------------------------------
    # Notifications and user actions
    def _on_auth_change(self, event: AuthEvent, identity: Identity | None) -> None:
        if not self._mounted:
            return

        logger.info("Auth state changed", auth_event=str(event), has_identity=identity is not None)

        if event == AuthEvent.SIGNED_OUT or identity is None:
            self._invalidate()
            self.context.commit(identity=None, profile=None, is_profile_loading=False, error=None)
            return

        if event == AuthEvent.SIGNED_IN:
            self._invalidate()
            self.context.commit(identity=identity, error=None)
            self._profile_task = asyncio.create_task(
                self._load_profile(identity, self._generation), name="profile-refetch"
            )
            return

        # Token refresh or user update: same subject, newer claims
        self.context.commit(identity=identity)

    async def refresh_profile(self) -> UserProfile | None:
        """Re-fetch the current identity's profile, superseding any fetch in flight."""
        identity = self.state.identity
        if not self._mounted or identity is None:
            return None

        self._invalidate()
        await self._load_profile(identity, self._generation)
        return self.state.profile

    async def sign_out(self) -> None:
        """Ask the provider to sign out; the SIGNED_OUT notification clears state."""
        try:
            self.context.commit(error=None)
            await self._auth.sign_out()
        except AuthProviderError as e:
            logger.error("Error signing out", error=str(e))
            if self._mounted:
                self.context.commit(error="Failed to sign out")
