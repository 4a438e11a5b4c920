"""Session providers — where the collection manager gets its owner id.

The manager never reads global auth state; a provider is injected so
that its behavior is reproducible in isolation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import jwt

logger = logging.getLogger(__name__)

SUPABASE_AUDIENCE = "authenticated"


@runtime_checkable
class SessionProvider(Protocol):
    """Supplies the authenticated owner identity, if any."""

    def current_owner_id(self) -> str | None: ...

    @property
    def is_logged_in(self) -> bool: ...


class StaticSession:
    """A fixed identity, or no identity when *owner_id* is empty."""

    def __init__(self, owner_id: str | None = None) -> None:
        self._owner_id = owner_id or None

    def current_owner_id(self) -> str | None:
        return self._owner_id

    @property
    def is_logged_in(self) -> bool:
        return self._owner_id is not None


class TokenSession:
    """Owner identity taken from the ``sub`` claim of a Supabase access token.

    When *jwt_secret* is set the HS256 signature, expiry and audience are
    verified; otherwise the token is decoded without verification (the
    store still enforces it server-side).  Invalid or expired tokens mean
    "not logged in".
    """

    def __init__(self, access_token: str = "", jwt_secret: str = "") -> None:
        self._token = access_token
        self._secret = jwt_secret
        self._listeners: list[Callable[[bool], None]] = []

    @property
    def access_token(self) -> str:
        return self._token

    def _claims(self) -> dict | None:
        if not self._token:
            return None
        try:
            if self._secret:
                return jwt.decode(
                    self._token,
                    self._secret,
                    algorithms=["HS256"],
                    audience=SUPABASE_AUDIENCE,
                )
            return jwt.decode(
                self._token,
                options={"verify_signature": False, "verify_exp": True},
                algorithms=["HS256"],
            )
        except jwt.ExpiredSignatureError:
            logger.info("Access token has expired")
            return None
        except jwt.InvalidTokenError:
            logger.warning("Access token could not be decoded", exc_info=True)
            return None

    def current_owner_id(self) -> str | None:
        claims = self._claims()
        if not claims:
            return None
        sub = claims.get("sub")
        return str(sub) if sub else None

    @property
    def is_logged_in(self) -> bool:
        return self.current_owner_id() is not None

    def subscribe(self, callback: Callable[[bool], None]) -> None:
        """Register *callback* to hear logged-in changes."""
        self._listeners.append(callback)

    def sign_in(self, access_token: str) -> None:
        self._token = access_token
        self._notify()

    def sign_out(self) -> None:
        self._token = ""
        self._notify()

    def _notify(self) -> None:
        logged_in = self.is_logged_in
        for callback in list(self._listeners):
            callback(logged_in)
