# vault/core/errors.py


class VaultError(Exception):
    """Base class for errors raised by the vault core"""


class NotFound(VaultError):
    """The targeted message or user does not exist"""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class MalformedInput(VaultError):
    """Request is missing required fields; rejected before touching the store"""


class Conflict(VaultError):
    """Unique key already taken"""


class StoreError(VaultError):
    """Backing store read or write failed"""


class DeliveryFailure(VaultError):
    """A subscriber could not accept a pushed frame"""
