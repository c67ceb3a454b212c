from typing import Optional, Tuple, Type

from delivery.shared.logger import JohnWickLogger
from delivery.shared.retry.base import RetryPolicy


class FixedDelayRetry(RetryPolicy):
    name = "FixedDelay"

    def __init__(
        self,
        max_retries: int = 3,
        delay: float = 1.0,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        logger: Optional[JohnWickLogger] = None,
    ):
        self.max_retries = max(1, max_retries)
        self.delay = delay
        self.retry_on = retry_on
        self.logger = logger or JohnWickLogger(name="FixedDelayRetry")

    def delay_for(self, attempt: int) -> float:
        return self.delay
