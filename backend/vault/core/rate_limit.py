# vault/core/rate_limit.py

from slowapi import Limiter
from slowapi.util import get_remote_address

from vault.core.config import AUTH_RATE_LIMIT, CREATE_MESSAGE_RATE_LIMIT

# One limiter per process, keyed by client address. In-memory storage, so
# limits are per serving process like the subscriber registry.
limiter = Limiter(key_func=get_remote_address)

# Rate limit constants
CREATE_MESSAGE_LIMIT = CREATE_MESSAGE_RATE_LIMIT
AUTH_LIMIT = AUTH_RATE_LIMIT
