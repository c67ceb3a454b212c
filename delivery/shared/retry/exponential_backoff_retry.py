from typing import Optional, Tuple, Type

from delivery.shared.logger import JohnWickLogger
from delivery.shared.retry.base import RetryPolicy


class ExponentialBackoffRetry(RetryPolicy):
    """
    Doubles the wait after every failure: ``base_delay * 2 ** (attempt - 1)``,
    capped at ``max_delay`` when set.

    The relay supervisor also uses ``delay_for`` on its own to space out
    session restarts.
    """

    name = "Exponential backoff"

    def __init__(
        self,
        max_retries: int = 5,
        base_delay: float = 0.5,
        max_delay: Optional[float] = None,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        logger: Optional[JohnWickLogger] = None,
    ):
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retry_on = retry_on
        self.logger = logger or JohnWickLogger(name="ExponentialBackoffRetry")

    def delay_for(self, attempt: int) -> float:
        delay = self.base_delay * (2 ** (attempt - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay
