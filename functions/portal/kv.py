"""
Key-value storage backend on Redis.

Users are stored as JSON under ``<prefix>:user:<id>`` with a secondary index
``<prefix>:username:<name>`` holding the id. The record is written first and
the index is claimed afterwards with ``SET NX``; the claim is what enforces
username uniqueness. A crash between the two writes leaves a record without
an index entry. Lookups only trust the index; ``create_user`` scans user
records before registering a name the index does not know, and re-claims the
index for any record it finds.

Site content is one hash per site, ``<prefix>:content:<site_id>``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import redis

from portal import passwords
from portal.errors import UsernameExistsError
from portal.schemas import SafeUser
from portal.storage import UserRecord, check_credentials, new_user_id

logger = logging.getLogger(__name__)


@dataclass
class RedisStorage:
    """Redis-backed implementation of ``Storage``."""

    url: Optional[str] = None
    key_prefix: str = "portal"
    client: Any = field(default=None, repr=False)

    def __post_init__(self):
        if self.client is None:
            if not self.url:
                raise ValueError("REDIS_URL is required for RedisStorage")
            self.client = redis.Redis.from_url(self.url, decode_responses=True)

    def _user_key(self, user_id: str) -> str:
        return f"{self.key_prefix}:user:{user_id}"

    def _username_key(self, username: str) -> str:
        return f"{self.key_prefix}:username:{username}"

    def _content_key(self, site_id: str) -> str:
        return f"{self.key_prefix}:content:{site_id}"

    @staticmethod
    def _decode(raw: Optional[str]) -> Optional[UserRecord]:
        if raw is None:
            return None
        data = json.loads(raw)
        return UserRecord(
            id=data["id"], username=data["username"], password=data["password"]
        )

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._decode(self.client.get(self._user_key(user_id)))

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        user_id = self.client.get(self._username_key(username))
        if not user_id:
            return None
        user = self.get_user(user_id)
        if user and user.username == username:
            return user
        return None

    def _scan_for_username(self, username: str) -> Optional[UserRecord]:
        for key in self.client.scan_iter(match=self._user_key("*")):
            user = self._decode(self.client.get(key))
            if user and user.username == username:
                logger.warning(
                    "Repairing username index for %r -> %s", username, user.id
                )
                self.client.set(self._username_key(username), user.id, nx=True)
                return user
        return None

    def create_user(self, username: str, password: str) -> UserRecord:
        if self.get_user_by_username(username) or self._scan_for_username(username):
            raise UsernameExistsError()
        record = UserRecord(
            id=new_user_id(),
            username=username,
            password=passwords.hash_password(password),
        )
        user_key = self._user_key(record.id)
        self.client.set(user_key, json.dumps(record.as_dict()))
        index_key = self._username_key(username)
        claimed = self.client.set(index_key, record.id, nx=True)
        if not claimed and self.client.get(index_key) != record.id:
            # Lost the race for this username to a concurrent writer.
            self.client.delete(user_key)
            raise UsernameExistsError()
        return record

    def verify_password(self, username: str, password: str) -> Optional[SafeUser]:
        return check_credentials(self.get_user_by_username(username), password)

    def get_content(self, site_id: str) -> Dict[str, str]:
        return dict(self.client.hgetall(self._content_key(site_id)))

    def upsert_content(self, site_id: str, entries: Dict[str, str]) -> None:
        if not entries:
            return
        self.client.hset(self._content_key(site_id), mapping=entries)
