"""
Storage abstraction for users and site content, plus the in-memory backend.

The Redis and SQL backends live in ``portal.kv`` and ``portal.db``; all three
satisfy the ``Storage`` protocol below.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from portal import passwords
from portal.errors import UsernameExistsError
from portal.schemas import SafeUser


@dataclass(frozen=True)
class UserRecord:
    id: str
    username: str
    password: str

    def to_safe(self) -> SafeUser:
        return SafeUser(id=self.id, username=self.username)

    def as_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "password": self.password}


class Storage(Protocol):
    """Defines the operations the API needs from a storage backend."""

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        ...

    def create_user(self, username: str, password: str) -> UserRecord:
        ...

    def verify_password(self, username: str, password: str) -> Optional[SafeUser]:
        ...

    def get_content(self, site_id: str) -> Dict[str, str]:
        ...

    def upsert_content(self, site_id: str, entries: Dict[str, str]) -> None:
        ...


def new_user_id() -> str:
    return uuid.uuid4().hex


def check_credentials(user: Optional[UserRecord], password: str) -> Optional[SafeUser]:
    """
    Verify ``password`` for a looked-up user.

    A missing user still costs one KDF run against a dummy hash, so callers
    cannot tell an unknown username from a wrong password.
    """
    if user is None:
        passwords.verify_password(password, passwords.DUMMY_HASH)
        return None
    if passwords.verify_password(password, user.password):
        return user.to_safe()
    return None


class InMemoryStorage:
    """Process-local storage for development and tests. Not durable."""

    def __init__(self):
        self._lock = threading.Lock()
        self.users: Dict[str, UserRecord] = {}
        self.content: Dict[str, Dict[str, str]] = {}

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self._lock:
            for user in self.users.values():
                if user.username == username:
                    return user
        return None

    def create_user(self, username: str, password: str) -> UserRecord:
        hashed = passwords.hash_password(password)
        with self._lock:
            if any(user.username == username for user in self.users.values()):
                raise UsernameExistsError()
            record = UserRecord(id=new_user_id(), username=username, password=hashed)
            self.users[record.id] = record
            return record

    def verify_password(self, username: str, password: str) -> Optional[SafeUser]:
        return check_credentials(self.get_user_by_username(username), password)

    def get_content(self, site_id: str) -> Dict[str, str]:
        with self._lock:
            return dict(self.content.get(site_id, {}))

    def upsert_content(self, site_id: str, entries: Dict[str, str]) -> None:
        with self._lock:
            self.content.setdefault(site_id, {}).update(entries)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.users.clear()
            self.content.clear()
