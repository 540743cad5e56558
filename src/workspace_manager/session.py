"""Session store holding the (mock) signed-in user.

There is no credential check behind login or signup: a request waits for a
simulated latency and then installs an identity built from the email
address. Each request takes a new generation token, and only the request
holding the latest token may change state, so a slow earlier response can
never overwrite a newer one.
"""

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import quote

import structlog

from workspace_manager.backend import StorageBackend
from workspace_manager.errors import AuthError
from workspace_manager.models import User, utc_now
from workspace_manager.persistence import AUTH_STORAGE_KEY, decode_session, encode_session

logger = structlog.get_logger()

AVATAR_URL = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"
LOGIN_FAILED = "Invalid email or password"
SIGNUP_FAILED = "Failed to create account"


@dataclass
class AuthOutcome:
    """Settled result of a login or signup request.

    ``stale`` is set when the request was cancelled or superseded by a newer
    one; such a request leaves the session untouched.
    """

    success: bool
    user: User | None = None
    error: str | None = None
    stale: bool = False


def avatar_url(email: str) -> str:
    return AVATAR_URL.format(seed=quote(email, safe="@."))


def _valid_email(email: str) -> bool:
    local, _, domain = email.strip().partition("@")
    return bool(local) and bool(domain)


class SessionStore:
    """Holds at most one authenticated user plus loading and error state."""

    def __init__(
        self,
        backend: StorageBackend,
        latency: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.backend = backend
        self.latency = latency
        self._clock = clock
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self.user: User | None = None
        self.is_loading = False
        self.error: str | None = None
        self._generation = 0
        self._pending: asyncio.Future | None = None

    def open(self) -> "SessionStore":
        """Restore the persisted user, if any."""
        document = self.backend.load(AUTH_STORAGE_KEY)
        self.user = decode_session(document) if document is not None else None
        logger.debug("Session loaded", signed_in=self.user is not None)
        return self

    @property
    def generation(self) -> int:
        return self._generation

    def _persist(self) -> None:
        self.backend.save(AUTH_STORAGE_KEY, encode_session(self.user))

    def _begin(self) -> int:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._generation += 1
        self.is_loading = True
        self.error = None
        return self._generation

    async def _request(self, kind: str, build_user: Callable[[], User], failure: str) -> AuthOutcome:
        token = self._begin()
        logger.info("Auth request started", kind=kind, token=token)

        pending = asyncio.ensure_future(asyncio.sleep(self.latency))
        self._pending = pending
        try:
            await pending
        except asyncio.CancelledError:
            if token != self._generation:
                logger.info("Auth request superseded", kind=kind, token=token)
                return AuthOutcome(success=False, stale=True)
            # The caller itself was cancelled.
            self.is_loading = False
            raise
        finally:
            if self._pending is pending:
                self._pending = None

        if token != self._generation:
            logger.info("Discarding stale auth response", kind=kind, token=token)
            return AuthOutcome(success=False, stale=True)

        try:
            user = build_user()
        except AuthError as e:
            logger.warning("Auth request rejected", kind=kind, reason=str(e))
            self.error = failure
            self.is_loading = False
            return AuthOutcome(success=False, error=failure)

        self.user = user
        self.is_loading = False
        self._persist()
        logger.info("Auth request succeeded", kind=kind, user_id=user.id)
        return AuthOutcome(success=True, user=user)

    async def login(self, email: str, password: str) -> AuthOutcome:
        """Sign in with any well-formed email and non-empty password."""

        def build_user() -> User:
            if not _valid_email(email) or not password:
                raise AuthError("email and password are required")
            address = email.strip()
            return User(
                id=uuid.uuid5(uuid.NAMESPACE_URL, f"mailto:{address}").hex,
                email=address,
                name=address.split("@")[0],
                avatar=avatar_url(address),
                created_at=self._clock(),
            )

        return await self._request("login", build_user, LOGIN_FAILED)

    async def signup(self, name: str, email: str, password: str) -> AuthOutcome:
        """Create a (mock) account and sign in as it."""

        def build_user() -> User:
            if not name.strip() or not _valid_email(email) or not password:
                raise AuthError("name, email and password are required")
            address = email.strip()
            return User(
                id=self._id_factory(),
                email=address,
                name=name.strip(),
                avatar=avatar_url(address),
                created_at=self._clock(),
            )

        return await self._request("signup", build_user, SIGNUP_FAILED)

    def cancel(self) -> bool:
        """Abort the in-flight request. Returns False if none was pending."""
        if self._pending is None or self._pending.done():
            return False
        self._generation += 1
        self._pending.cancel()
        self.is_loading = False
        logger.info("Auth request cancelled")
        return True

    def logout(self) -> None:
        self.cancel()
        self.user = None
        self.error = None
        self._persist()
        logger.info("Logged out")

    def clear_error(self) -> None:
        self.error = None
