"""Runner for side effects that must never gate the primary operation.

Audit writes and object-storage deletions go through :func:`best_effort`.
It is the only place in the service where such failures are swallowed: the
error is logged with its traceback and ``None`` is returned.
"""
from typing import Any, Awaitable, Callable

from loguru import logger


async def best_effort(label: str, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
    try:
        return await fn(*args, **kwargs)
    except Exception:
        logger.opt(exception=True).warning("Best-effort step failed: {}", label)
        return None
