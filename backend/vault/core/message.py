# vault/core/message.py

import logging
import threading
from typing import Any, Dict, List, Optional

from vault.core.config import MAX_FILE_URL_LENGTH
from vault.core.errors import MalformedInput, NotFound
from vault.core.message_logic import is_expired, sweep_expired
from vault.infra.log_store import LogStore, parse_timestamp, strip_payload
from vault.services.relay_service import (
    EventBroadcaster,
    add_event,
    delete_event,
    seen_event,
)

logger = logging.getLogger(__name__)

MESSAGE_TYPES = ("text", "file")


def validate_message(payload: Dict[str, Any]) -> None:
    """Reject a create request before it touches the store"""
    if not payload.get("userId"):
        raise MalformedInput("userId is required")

    message_type = payload.get("type")
    if message_type not in MESSAGE_TYPES:
        raise MalformedInput(f"type must be one of {', '.join(MESSAGE_TYPES)}")

    if message_type == "text" and not (payload.get("content") or "").strip():
        raise MalformedInput("Text messages need content")

    if message_type == "file":
        if not payload.get("url"):
            raise MalformedInput("File messages need a url payload")
        if not payload.get("name"):
            raise MalformedInput("File messages need a name")
        if len(payload["url"]) > MAX_FILE_URL_LENGTH:
            raise MalformedInput(f"File payload exceeds {MAX_FILE_URL_LENGTH} characters")


class MessageService:
    """
    Mutation handlers: change the log store, then broadcast the derived event.

    Each mutation and its broadcast run under one lock, so subscribers see
    events in the same order the store applied them, and the store commit
    always happens before the event goes out.
    """

    def __init__(self, store: LogStore, broadcaster: EventBroadcaster):
        self.store = store
        self.broadcaster = broadcaster
        self._lock = threading.RLock()

    def create(
        self,
        payload: Dict[str, Any],
        device_info: Optional[Dict[str, str]] = None,
        base_url: str = "",
    ) -> Dict[str, Any]:
        validate_message(payload)

        record = {
            "type": payload["type"],
            "content": payload.get("content") or payload.get("name") or "",
            "userId": payload["userId"],
            "deviceInfo": device_info or {"userAgent": "Unknown", "ip": "Unknown"},
            "seenBy": [],
        }
        if payload["type"] == "file":
            record["name"] = payload["name"]
            record["url"] = payload["url"]

        with self._lock:
            record["id"] = self.store.next_id()
            if payload["type"] == "file":
                record["shareableUrl"] = f"{base_url.rstrip('/')}/shared/{record['id']}"

            created = self.store.append_message(record)
            self.broadcaster.broadcast(add_event(created))

        logger.info(f"Message {created['id']} ({created['type']}) created by {created['userId']}")
        return strip_payload(created)

    def list(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Current messages without payloads. Expired messages are swept first."""
        self.sweep()
        return self.store.list_messages(user_id)

    def _get_live(self, message_id: str) -> Dict[str, Any]:
        """Load a record; an expired one is removed (broadcasting delete) and reported missing"""
        message = self.store.get_message(message_id)

        if is_expired(parse_timestamp(message["uploadedAt"])):
            logger.info(f"Message {message_id} expired on access")
            try:
                self.delete(message_id)
            except NotFound:
                pass
            raise NotFound("Message", message_id)

        return message

    def fetch(self, message_id: str) -> Dict[str, Any]:
        """Full record including url. An expired record is removed and reported missing."""
        return self._get_live(message_id)

    def consume(self, message_id: str) -> Dict[str, Any]:
        """
        Shared-link download. File messages are deleted as soon as the payload
        has been read, so each link works once. Text messages are left alone.
        """
        message = self.fetch(message_id)

        if message["type"] == "file":
            try:
                self.delete(message_id)
            except NotFound:
                # Another download won the race; it already has the payload
                raise NotFound("Message", message_id)
            logger.info(f"File {message_id} downloaded and removed")

        return message

    def mark_seen(self, message_id: str, viewer_id: str) -> Dict[str, Any]:
        with self._lock:
            self._get_live(message_id)
            message, added = self.store.mark_seen(message_id, viewer_id)
            if added:
                self.broadcaster.broadcast(seen_event(message_id, viewer_id))
        return strip_payload(message)

    def delete(self, message_id: str) -> None:
        with self._lock:
            self.store.delete_message(message_id)
            self.broadcaster.broadcast(delete_event(message_id))
        logger.info(f"Message {message_id} deleted")

    def sweep(self, now=None) -> List[str]:
        return sweep_expired(self, now)
