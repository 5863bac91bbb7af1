"""Session gate — fixed-credential login and a session-scoped flag.

This is a client-trust gate for a small internal tool, not a security
boundary: the flag lives in whatever session storage the caller hands in.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import MutableMapping, Optional

logger = logging.getLogger(__name__)

SESSION_KEY = "isAuthenticated"

LOGIN_VIEW = "login"
PROTECTED_VIEWS = frozenset({"admin"})

_DEFAULT_USERNAME = "brahim"
_DEFAULT_PASSWORD = "moussab"


class SessionGate:
    def __init__(
        self,
        storage: MutableMapping,
        username: Optional[str] = None,
        password: Optional[str] = None,
        delay: Optional[float] = None,
    ):
        self._storage = storage
        self._username = username or os.getenv("ADMIN_USERNAME", _DEFAULT_USERNAME)
        self._password = password or os.getenv("ADMIN_PASSWORD", _DEFAULT_PASSWORD)
        self._delay = delay if delay is not None else float(os.getenv("LOGIN_DELAY_SECONDS", "0.5"))

    @property
    def is_authenticated(self) -> bool:
        return self._storage.get(SESSION_KEY) is True

    async def login(self, username: str, password: Optional[str]) -> bool:
        # Simulated round-trip
        await asyncio.sleep(self._delay)

        ok = username == self._username and password == self._password
        self._storage[SESSION_KEY] = ok
        if ok:
            logger.info("Admin login succeeded for %s", username)
        else:
            logger.warning("Admin login rejected for %s", username)
        return ok

    def logout(self) -> None:
        self._storage.pop(SESSION_KEY, None)

    def guard(self, view: str) -> str:
        """Return the view to render: protected views fall back to login."""
        if view in PROTECTED_VIEWS and not self.is_authenticated:
            return LOGIN_VIEW
        return view
