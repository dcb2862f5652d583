"""
Structured logging for the forecaster service.

Call sites log an event name and pass context through ``extra``:

    logger.info("CRITIC_NODE_END", extra={"follow_ups": 3})

The formatter appends every non-standard record attribute as key=value.
"""

import logging
import os
from typing import Optional

_RESERVED = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class KeyValueFormatter(logging.Formatter):
    """Render ``extra`` fields after the event name."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = {
            k: v for k, v in record.__dict__.items()
            if k not in _RESERVED and not k.startswith("_")
        }
        if not extras:
            return base
        pairs = " ".join(f"{k}={v!r}" for k, v in sorted(extras.items()))
        return f"{base} | {pairs}"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once. Idempotent."""
    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        KeyValueFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root.addHandler(handler)
    root.setLevel(level or os.getenv("LOG_LEVEL", "INFO"))


logger = logging.getLogger("forecaster")
