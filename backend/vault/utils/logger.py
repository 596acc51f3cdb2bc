# vault/utils/logger.py

import logging

from vault.core.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(level: str = LOG_LEVEL) -> None:
    """Configure the root logger once; safe to call again (e.g. under reload)."""
    root = logging.getLogger()
    root.setLevel(level.upper())

    if any(getattr(h, "_vault_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._vault_handler = True
    root.addHandler(handler)

    # uvicorn's access log duplicates what the routers already log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
