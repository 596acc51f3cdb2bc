from datetime import datetime, timedelta, timezone
import logging

from vault.core.errors import NotFound

logger = logging.getLogger(__name__)

# Fixed; not configurable
MESSAGE_TTL = timedelta(hours=1)


def utcnow() -> datetime:
    """Naive UTC now, matching what the store persists"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_expired(uploaded_at: datetime, now: datetime | None = None) -> bool:
    now = now or utcnow()
    return now - uploaded_at > MESSAGE_TTL


def expiry_cutoff(now: datetime | None = None) -> datetime:
    """Messages uploaded strictly before this instant are expired"""
    return (now or utcnow()) - MESSAGE_TTL


def sweep_expired(service, now: datetime | None = None) -> list[str]:
    """
    Delete every message older than the TTL through the normal delete path,
    so each removal is broadcast. Idempotent: a message deleted concurrently
    is skipped.
    """
    removed = []
    for message_id in service.store.expired_message_ids(expiry_cutoff(now)):
        try:
            service.delete(message_id)
        except NotFound:
            continue
        removed.append(message_id)

    if removed:
        logger.info(f"Expired {len(removed)} message(s): {', '.join(removed)}")
    return removed
