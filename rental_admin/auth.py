"""Session context for the signed-in operator.

One ``SessionContext`` is created per browser session and handed to the
pages that need it. Its user and profile change only when the identity
provider reports an auth event (plus ``start``/``close``); pages never
assign them directly.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from rental_admin.db.database import error_message, execute
from rental_admin.db.models import PROFILES_TABLE, Profile
from rental_admin.errors import AuthError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

Listener = Callable[["SessionContext"], None]

RELOAD_EVENTS = ("SIGNED_IN", "INITIAL_SESSION", "TOKEN_REFRESHED", "USER_UPDATED")


class SessionContext:
    def __init__(self, client):
        self.client = client
        self.user: Optional[Any] = None
        self.profile: Optional[Profile] = None
        self._subscription = None
        self._listeners: List[Listener] = []

    # ----------------- LIFECYCLE ------------------------

    @property
    def started(self) -> bool:
        return self._subscription is not None

    def start(self) -> "SessionContext":
        if self.started:
            return self
        try:
            session = self.client.auth.get_session()
        except Exception as e:
            logger.error("Error checking auth status: %s", error_message(e))
            session = None
        self._apply_session(session)
        self._subscription = self.client.auth.on_auth_state_change(self._on_auth_event)
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._listeners.clear()
        self.user = None
        self.profile = None

    def __enter__(self) -> "SessionContext":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ----------------- EVENTS ------------------------

    def _on_auth_event(self, event: str, session: Any) -> None:
        logger.debug("Auth event %s", event)
        if event == "SIGNED_OUT":
            self._apply_session(None)
        elif event in RELOAD_EVENTS:
            self._apply_session(session)
        else:
            return
        for listener in list(self._listeners):
            listener(self)

    def _apply_session(self, session: Any) -> None:
        user = getattr(session, "user", None) if session is not None else None
        self.user = user
        self.profile = self._fetch_profile(user.id) if user is not None else None

    def _fetch_profile(self, user_id: str) -> Optional[Profile]:
        try:
            rows = execute(
                self.client.table(PROFILES_TABLE).select("*").eq("id", user_id).limit(1),
                "fetch user profile",
            )
        except PersistenceError:
            return None
        return Profile.from_row(rows[0]) if rows else None

    # ----------------- ACTIONS ------------------------

    def login(self, email: str, password: str) -> Any:
        if not (email or "").strip() or not password:
            raise ValidationError("Email and password are required.")
        try:
            response = self.client.auth.sign_in_with_password(
                {"email": email.strip(), "password": password}
            )
        except Exception as e:
            message = error_message(e)
            logger.error("Login error: %s", message)
            raise AuthError(f"Login failed: {message}") from e

        session = getattr(response, "session", None)
        if session is None:
            raise AuthError("Login failed: no session returned.")
        return session

    def logout(self) -> None:
        try:
            self.client.auth.sign_out()
        except Exception as e:
            logger.error("Logout error: %s", error_message(e))

    # ----------------- ROLE ------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.is_admin

    def require_authenticated(self) -> None:
        if not self.is_authenticated:
            raise AuthError("Please sign in to continue.")

    def require_admin(self) -> None:
        self.require_authenticated()
        if not self.is_admin():
            raise AuthError("Only administrators can do this.")
