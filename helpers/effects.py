from typing import Awaitable

from logger.logger import logger


async def run_best_effort(description: str, effect: Awaitable) -> bool:
    """
    Await a secondary effect (socket push, notification fan-out) whose failure
    must not change the outcome of the operation that triggered it.

    Returns True when the effect completed. Failures are logged and swallowed.
    """
    try:
        await effect
        return True
    except Exception as e:
        logger.warning(f"Best-effort {description} failed: {e}")
        return False
