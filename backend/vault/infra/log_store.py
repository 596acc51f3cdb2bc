# vault/infra/log_store.py

import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from vault.core.errors import Conflict, MalformedInput, NotFound, StoreError
from vault.core.message_logic import utcnow
from vault.infra.database import (
    build_engine,
    build_session_factory,
    db_session,
    drop_db,
    init_db,
)
from vault.models.message import Message
from vault.models.user import User

logger = logging.getLogger(__name__)


class Collection(BaseModel):
    """The whole persisted document: { users: [...], messages: [...] }"""

    users: List[Dict[str, Any]] = Field(default_factory=list)
    messages: List[Dict[str, Any]] = Field(default_factory=list)


# =========================
# RECORD CONVERSION
# =========================

def format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds") + "Z"


def parse_timestamp(value) -> datetime:
    """Accept a datetime or an ISO-8601 string; return naive UTC"""
    if isinstance(value, str):
        raw = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            value = datetime.fromisoformat(raw)
        except ValueError as e:
            raise MalformedInput(f"Invalid timestamp: {value}") from e
    if not isinstance(value, datetime):
        raise MalformedInput(f"Invalid timestamp: {value!r}")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def strip_payload(record: Dict[str, Any]) -> Dict[str, Any]:
    """List-view form of a message: everything except the raw url"""
    return {k: v for k, v in record.items() if k != "url"}


def message_to_dict(row: Message, include_url: bool = True) -> Dict[str, Any]:
    record = {
        "id": row.id,
        "type": row.type,
        "content": row.content,
        "userId": row.user_id,
    }
    if row.name is not None:
        record["name"] = row.name
    if include_url and row.url is not None:
        record["url"] = row.url
    if row.shareable_url:
        record["shareableUrl"] = row.shareable_url
    record["uploadedAt"] = format_timestamp(row.uploaded_at)
    record["deviceInfo"] = {
        "userAgent": row.device_user_agent,
        "ip": row.device_ip,
    }
    record["seenBy"] = list(row.seen_by or [])
    return record


def message_from_dict(record: Dict[str, Any]) -> Message:
    device = record.get("deviceInfo") or {}
    seen_by = []
    for viewer in record.get("seenBy") or []:
        if viewer not in seen_by:
            seen_by.append(viewer)

    return Message(
        id=str(record["id"]),
        type=record["type"],
        content=record.get("content") or "",
        user_id=record["userId"],
        name=record.get("name"),
        url=record.get("url"),
        shareable_url=record.get("shareableUrl"),
        uploaded_at=parse_timestamp(record["uploadedAt"]),
        device_user_agent=device.get("userAgent") or "Unknown",
        device_ip=device.get("ip") or "Unknown",
        seen_by=seen_by,
    )


def user_to_dict(row: User, include_secret: bool = False) -> Dict[str, Any]:
    record = {
        "id": row.id,
        "username": row.username,
        "createdAt": format_timestamp(row.created_at),
    }
    if include_secret:
        record["passwordHash"] = row.password_hash
    return record


def user_from_dict(record: Dict[str, Any]) -> User:
    return User(
        id=str(record["id"]),
        username=record["username"],
        password_hash=record["passwordHash"],
        created_at=parse_timestamp(record.get("createdAt") or utcnow()),
    )


# =========================
# STORE
# =========================

class LogStore:
    """
    Durable message log backed by SQLAlchemy.

    All mutations are serialized through one re-entrant lock owned by the
    instance, so concurrent writers in this process cannot lose updates.
    Every SQLAlchemy failure is surfaced as StoreError.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = build_engine(database_url)
        self.SessionLocal = build_session_factory(self.engine)

        self._lock = threading.RLock()
        self._ready = False
        self._last_id = 0

    # ---------- bootstrap ----------

    def bootstrap(self) -> None:
        """Create the schema if absent and seed the id counter. First run is not an error."""
        with self._lock:
            if self._ready:
                return
            try:
                init_db(self.engine)
                with db_session(self.SessionLocal) as session:
                    ids = [r[0] for r in session.query(Message.id).all()]
                    ids += [r[0] for r in session.query(User.id).all()]
            except SQLAlchemyError as e:
                logger.error(f"Store bootstrap failed: {e}")
                raise StoreError(str(e)) from e

            numeric = [int(i) for i in ids if i and i.isdigit()]
            self._last_id = max(numeric, default=0)
            self._ready = True
            logger.info(f"Log store ready at {self.engine.url.render_as_string(hide_password=True)}")

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def _session(self):
        self.bootstrap()
        try:
            with db_session(self.SessionLocal) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Store operation failed: {e}")
            raise StoreError(str(e)) from e

    def next_id(self) -> str:
        """Reserve a time-derived id, strictly greater than any id handed out before"""
        with self._lock:
            self.bootstrap()
            candidate = max(int(time.time() * 1000), self._last_id + 1)
            self._last_id = candidate
            return str(candidate)

    # ---------- whole collection ----------

    def load(self) -> Collection:
        with self._session() as session:
            users = session.query(User).order_by(User.created_at, User.id).all()
            messages = (
                session.query(Message)
                .order_by(Message.uploaded_at, Message.id)
                .all()
            )
            return Collection(
                users=[user_to_dict(u, include_secret=True) for u in users],
                messages=[message_to_dict(m) for m in messages],
            )

    def save(self, collection: Collection) -> None:
        """Replace everything persisted with `collection`, all or nothing"""
        users = [user_from_dict(u) for u in collection.users]
        messages = [message_from_dict(m) for m in collection.messages]

        with self._lock:
            with self._session() as session:
                session.query(Message).delete()
                session.query(User).delete()
                session.add_all(users)
                session.add_all(messages)

            numeric = [int(r.id) for r in users + messages if r.id.isdigit()]
            self._last_id = max([self._last_id, *numeric])

    def reset(self) -> None:
        """Drop and recreate the schema, leaving an empty collection"""
        with self._lock:
            try:
                drop_db(self.engine)
            except SQLAlchemyError as e:
                raise StoreError(str(e)) from e
            self._ready = False
            self.bootstrap()

    # ---------- messages ----------

    def list_messages(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._session() as session:
            query = session.query(Message)
            if user_id:
                query = query.filter(Message.user_id == user_id)
            rows = query.order_by(Message.uploaded_at, Message.id).all()
            return [message_to_dict(m, include_url=False) for m in rows]

    def get_message(self, message_id: str) -> Dict[str, Any]:
        with self._session() as session:
            row = session.get(Message, message_id)
            if row is None:
                raise NotFound("Message", message_id)
            return message_to_dict(row)

    def append_message(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new message, assigning id and uploadedAt when absent"""
        with self._lock:
            record = dict(record)
            if not record.get("id"):
                record["id"] = self.next_id()
            if not record.get("uploadedAt"):
                record["uploadedAt"] = utcnow()

            row = message_from_dict(record)
            with self._session() as session:
                if session.get(Message, row.id) is not None:
                    raise MalformedInput(f"Message id already exists: {row.id}")
                session.add(row)
            return message_to_dict(row)

    def mark_seen(self, message_id: str, viewer_id: str) -> Tuple[Dict[str, Any], bool]:
        """Add viewer_id to seenBy. Returns (record, added); added is False if already present."""
        with self._lock:
            with self._session() as session:
                row = session.get(Message, message_id)
                if row is None:
                    raise NotFound("Message", message_id)

                seen_by = list(row.seen_by or [])
                added = viewer_id not in seen_by
                if added:
                    row.seen_by = seen_by + [viewer_id]
                return message_to_dict(row), added

    def delete_message(self, message_id: str) -> None:
        with self._lock:
            with self._session() as session:
                row = session.get(Message, message_id)
                if row is None:
                    raise NotFound("Message", message_id)
                session.delete(row)

    def expired_message_ids(self, cutoff: datetime) -> List[str]:
        with self._session() as session:
            rows = (
                session.query(Message.id)
                .filter(Message.uploaded_at < cutoff)
                .order_by(Message.uploaded_at, Message.id)
                .all()
            )
            return [r[0] for r in rows]

    def count_messages(self) -> int:
        with self._session() as session:
            return session.query(func.count(Message.id)).scalar()

    # ---------- users ----------

    def create_user(self, username: str, password_hash: str) -> Dict[str, Any]:
        with self._lock:
            with self._session() as session:
                existing = (
                    session.query(User)
                    .filter(func.lower(User.username) == username.lower())
                    .first()
                )
                if existing is not None:
                    raise Conflict("Username already exists")

                user = User(
                    id=self.next_id(),
                    username=username,
                    password_hash=password_hash,
                    created_at=utcnow(),
                )
                session.add(user)
            return user_to_dict(user)

    def find_user(self, username: str) -> Optional[Dict[str, Any]]:
        """Case-insensitive lookup; includes the password hash"""
        with self._session() as session:
            user = (
                session.query(User)
                .filter(func.lower(User.username) == username.lower())
                .first()
            )
            return user_to_dict(user, include_secret=True) if user else None

    def list_users(self) -> List[Dict[str, Any]]:
        with self._session() as session:
            users = session.query(User).order_by(User.created_at, User.id).all()
            return [user_to_dict(u) for u in users]

    def count_users(self) -> int:
        with self._session() as session:
            return session.query(func.count(User.id)).scalar()
