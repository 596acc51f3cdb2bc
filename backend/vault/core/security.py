# vault/core/security.py

import base64
import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

# ---------- PARAMETERS ----------

SALT_BYTES = 16
KEY_LENGTH = 32
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


def _kdf(salt: bytes, n: int = SCRYPT_N, r: int = SCRYPT_R, p: int = SCRYPT_P) -> Scrypt:
    return Scrypt(salt=salt, length=KEY_LENGTH, n=n, r=r, p=p)


# ---------- HASHING ----------

def hash_password(password: str) -> str:
    """
    scrypt → "scrypt$n$r$p$salt$key" (salt and key base64)
    """
    salt = os.urandom(SALT_BYTES)
    key = _kdf(salt).derive(password.encode("utf-8"))
    return "$".join([
        "scrypt",
        str(SCRYPT_N),
        str(SCRYPT_R),
        str(SCRYPT_P),
        base64.b64encode(salt).decode(),
        base64.b64encode(key).decode(),
    ])


def verify_password(password: str, encoded: str) -> bool:
    """
    Check a password against a stored hash. Malformed hashes never verify.
    """
    try:
        scheme, n, r, p, salt_b64, key_b64 = encoded.split("$")
        if scheme != "scrypt":
            return False
        salt = base64.b64decode(salt_b64)
        expected = base64.b64decode(key_b64)
        kdf = _kdf(salt, int(n), int(r), int(p))
    except ValueError:
        return False

    try:
        kdf.verify(password.encode("utf-8"), expected)
        return True
    except InvalidKey:
        return False
