"""Shared entrypoint plumbing for polling workers."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable

from app.core.config import get_settings

settings = get_settings()


def configure_logging(prefix: str) -> None:
    logging.basicConfig(
        level=os.getenv(f"{prefix}_LOG_LEVEL", settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


async def run_worker(
    prefix: str,
    cycle: Callable[[], Awaitable[dict[str, int]]],
    default_poll_seconds: int,
    logger: logging.Logger,
) -> None:
    """Run ``cycle`` once or keep polling, as selected by ``<PREFIX>_MODE``."""
    configure_logging(prefix)
    mode = os.getenv(f"{prefix}_MODE", "once").strip().lower()
    poll_seconds = int(os.getenv(f"{prefix}_POLL_SECONDS", str(default_poll_seconds)))

    if mode == "once":
        logger.info("Worker stats: %s", await cycle())
        return

    while True:
        try:
            logger.info("Worker stats: %s", await cycle())
        except Exception:
            logger.exception("Worker cycle failed")
        await asyncio.sleep(poll_seconds)
