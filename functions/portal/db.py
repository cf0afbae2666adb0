"""
Relational storage backend built on SQLAlchemy.

Accepts any SQLAlchemy URL (Postgres in production, SQLite for tests). The
unique constraint on ``users.username`` is authoritative for conflicts.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional

from sqlalchemy import Column, String, UniqueConstraint, create_engine, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from portal import passwords
from portal.errors import UsernameExistsError
from portal.schemas import SafeUser
from portal.storage import UserRecord, check_credentials, new_user_id

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = re.compile(r"unique|duplicate", re.IGNORECASE)

# Dialects with INSERT .. ON CONFLICT DO UPDATE.
UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            # One shared connection, otherwise each pooled connection sees its own empty DB.
            options["poolclass"] = StaticPool
        return options
    return {"pool_pre_ping": True, "pool_recycle": 1800}


class SqlStorage:
    """
    SQLAlchemy-backed implementation of ``Storage``.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlStorage")
        self.engine = create_engine(
            database_url, future=True, **_engine_options(database_url)
        )
        self._insert = UPSERT_INSERTS.get(self.engine.dialect.name)
        if self._insert is None:
            raise ValueError(
                f"Unsupported database dialect for SqlStorage: {self.engine.dialect.name}"
            )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        return UserRecord(id=row.id, username=row.username, password=row.password)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            return self._to_user_record(row)

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.username == username).limit(1)
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            return self._to_user_record(row)

    def create_user(self, username: str, password: str) -> UserRecord:
        row = UserRow(
            id=new_user_id(),
            username=username,
            password=passwords.hash_password(password),
        )
        with self.Session() as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                if UNIQUE_VIOLATION.search(str(exc.orig)):
                    logger.info("Username %r already registered", username)
                    raise UsernameExistsError() from exc
                raise
            return self._to_user_record(row)

    def verify_password(self, username: str, password: str) -> Optional[SafeUser]:
        return check_credentials(self.get_user_by_username(username), password)

    def get_content(self, site_id: str) -> Dict[str, str]:
        with self.Session() as session:
            stmt = select(ContentRow).where(ContentRow.site_id == site_id)
            return {row.content_key: row.value for row in session.execute(stmt).scalars()}

    def upsert_content(self, site_id: str, entries: Dict[str, str]) -> None:
        if not entries:
            return
        stmt = self._insert(ContentRow.__table__).values(
            [{"site_id": site_id, "key": key, "value": value} for key, value in entries.items()]
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["site_id", "key"], set_={"value": stmt.excluded["value"]}
        )
        with self.Session() as session:
            session.execute(stmt)
            session.commit()


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("username", name="uq_users_username"),)

    id = Column(String, primary_key=True)
    username = Column(String, nullable=False)
    password = Column(String, nullable=False)


class ContentRow(Base):
    __tablename__ = "site_content"

    site_id = Column(String, primary_key=True)
    content_key = Column("key", String, primary_key=True)
    value = Column(String, nullable=False)
