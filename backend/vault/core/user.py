# vault/core/user.py

import logging

from vault.core.errors import MalformedInput
from vault.core.security import hash_password, verify_password
from vault.infra.log_store import LogStore

logger = logging.getLogger(__name__)


def register_user(store: LogStore, username: str, password: str) -> dict:
    """Create a user; raises Conflict when the name is taken (case-insensitive)"""
    username = (username or "").strip()
    if not username or not password:
        raise MalformedInput("Username and password are required")

    user = store.create_user(username, hash_password(password))
    logger.info(f"User {username} registered")
    return user


def authenticate(store: LogStore, username: str, password: str) -> dict | None:
    """Return the public user record on a password match, else None"""
    user = store.find_user((username or "").strip())
    if user is None or not verify_password(password or "", user["passwordHash"]):
        return None

    user.pop("passwordHash")
    return user
