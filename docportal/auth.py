# auth.py
import logging
import secrets
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Session(BaseModel):
    """Claims handed to a caller after a successful login."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    token: str
    username: str
    expires_at: datetime = Field(alias="expiresAt")

    @property
    def expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.expires_at


class Authenticator(ABC):
    """
    Capability interface for the login gate in front of the document operations.
    A real identity provider can replace the placeholder implementation
    without touching the document endpoints.
    """

    @abstractmethod
    def authenticate(self, username: str, password: str) -> Optional[Session]:
        """Returns a new session for valid credentials, otherwise None."""
        pass

    @abstractmethod
    def resolve(self, token: str) -> Optional[Session]:
        """Returns the live session for a token, or None if unknown or expired."""
        pass

    @abstractmethod
    def revoke(self, token: str):
        pass


class StaticCredentialAuthenticator(Authenticator):
    """
    Placeholder check against a single configured username/password pair.
    Sessions are opaque random tokens kept in process memory.
    """

    def __init__(self, username: str, password: Optional[str], ttl_seconds: int):
        self._username = username
        self._password = password
        self._ttl = timedelta(seconds=ttl_seconds)
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def authenticate(self, username: str, password: str) -> Optional[Session]:
        if self._password is None:
            logging.warning(f"Login attempt for '{username}' rejected: no admin password configured.")
            return None

        user_ok = secrets.compare_digest(username.encode(), self._username.encode())
        password_ok = secrets.compare_digest(password.encode(), self._password.encode())
        if not (user_ok and password_ok):
            logging.warning(f"Invalid credentials supplied for '{username}'.")
            return None

        session = Session(
            token=secrets.token_urlsafe(32),
            username=username,
            expires_at=datetime.now(timezone.utc) + self._ttl,
        )
        with self._lock:
            self._purge_expired()
            self._sessions[session.token] = session
        logging.info(f"User '{username}' logged in.")
        return session

    def resolve(self, token: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(token)
            if session is not None and session.expired:
                del self._sessions[token]
                session = None
        return session

    def revoke(self, token: str):
        with self._lock:
            session = self._sessions.pop(token, None)
        if session is not None:
            logging.info(f"User '{session.username}' logged out.")

    def _purge_expired(self):
        for token in [t for t, s in self._sessions.items() if s.expired]:
            del self._sessions[token]
