# vault/core/config.py

import os

# =========================
# CONFIGURATION
# =========================

# Any SQLAlchemy URL works; PostgreSQL needs the "postgres" extra installed
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/vault.db")

SWEEP_INTERVAL_SECONDS = float(os.getenv("SWEEP_INTERVAL_SECONDS", "60"))

# Longest accepted file payload (data URL characters); about 5 MB of file after base64
MAX_FILE_URL_LENGTH = int(os.getenv("MAX_FILE_URL_LENGTH", str(7 * 1024 * 1024)))

# =========================
# STREAMING
# =========================

SUBSCRIBER_QUEUE_SIZE = int(os.getenv("SUBSCRIBER_QUEUE_SIZE", "100"))
STREAM_KEEPALIVE_SECONDS = float(os.getenv("STREAM_KEEPALIVE_SECONDS", "15"))
STREAM_RETRY_MS = int(os.getenv("STREAM_RETRY_MS", "3000"))

# =========================
# HTTP
# =========================

CREATE_MESSAGE_RATE_LIMIT = os.getenv("CREATE_MESSAGE_RATE_LIMIT", "60/minute")
AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "10/minute")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
