import logging
import random
import time
from typing import Callable, Optional, Tuple, Type

from src.settlement_engine.services.errors import PersistenceFailure

logger = logging.getLogger("venue_settlement.utils.retry")


def with_backoff(
    fn: Callable,
    *,
    attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter_ratio: float = 0.1,
    retry_on: Tuple[Type[BaseException], ...] = (PersistenceFailure,),
    should_retry: Optional[Callable[[BaseException], bool]] = None,
):
    """
    Exponential backoff with jitter for transient persistence failures.
    - retry_on: which exception types to retry (default: PersistenceFailure only)
    - should_retry: optional predicate for finer control
    """
    last_exc = None
    for i in range(attempts):
        try:
            return fn()
        except retry_on as e:
            if should_retry and not should_retry(e):
                raise
            last_exc = e
            if i == attempts - 1:
                break
            sleep = min(max_delay, base_delay * (2 ** i))
            sleep *= (1.0 + random.uniform(-jitter_ratio, jitter_ratio))
            logger.warning(
                "Attempt %s/%s failed (%s); retrying in %.2fs", i + 1, attempts, e, sleep
            )
            time.sleep(max(0.0, sleep))
    assert last_exc is not None
    raise last_exc
