# vault/services/relay_service.py

import json
import logging
from typing import Any, Dict

from vault.infra.log_store import strip_payload
from vault.services.subscriber_registry import Subscriber, SubscriberRegistry

logger = logging.getLogger(__name__)


# =========================
# EVENTS
# =========================

def add_event(message: Dict[str, Any]) -> Dict[str, Any]:
    # Same policy as list views: never push the raw payload
    return {"action": "add", "message": strip_payload(message)}


def delete_event(message_id: str) -> Dict[str, Any]:
    return {"action": "delete", "id": message_id}


def seen_event(message_id: str, viewer_id: str) -> Dict[str, Any]:
    # "ip" duplicates viewerId for clients that read the address field
    return {"action": "seen", "id": message_id, "viewerId": viewer_id, "ip": viewer_id}


def encode_frame(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, separators=(',', ':'))}\n\n"


# =========================
# BROADCASTER
# =========================

class EventBroadcaster:
    """
    Fire-and-forget fan-out of events to every registered subscriber.

    The event is serialized once. A subscriber whose delivery fails is
    unregistered and closed; the remaining subscribers still get the frame
    and the caller never sees the failure.
    """

    def __init__(self, registry: SubscriberRegistry):
        self.registry = registry

    def broadcast(self, event: Dict[str, Any]) -> None:
        frame = encode_frame(event)
        delivered = 0
        dropped = 0

        def push(subscriber: Subscriber):
            nonlocal delivered, dropped
            try:
                subscriber.deliver(frame)
                delivered += 1
            except Exception as e:
                dropped += 1
                logger.warning(f"Dropping subscriber {subscriber.subscriber_id} ({subscriber.peer}): {e}")
                self.registry.unregister(subscriber)
                subscriber.close()

        self.registry.for_each(push)
        logger.debug(
            f"Broadcast {event.get('action')} to {delivered} subscriber(s)"
            + (f", dropped {dropped}" if dropped else "")
        )
