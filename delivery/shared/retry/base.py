import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Tuple, Type

from delivery.shared.logger import JohnWickLogger


class RetryPolicy(ABC):
    """
    Run an async callable, retrying failures listed in ``retry_on``.

    Subclasses only decide how long to wait before each new attempt.
    Cancellation and exceptions outside ``retry_on`` propagate immediately;
    once ``max_retries`` attempts have failed the last error is re-raised.
    """

    name = "retry"
    max_retries: int = 1
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    logger: JohnWickLogger

    @abstractmethod
    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt ``attempt`` (1-based)."""

    def should_retry(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retry_on)

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        for attempt in range(1, self.max_retries + 1):
            try:
                return await func(*args, **kwargs)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if not self.should_retry(exc):
                    raise
                if attempt == self.max_retries:
                    self.logger.error(
                        f"{self.name} retries exhausted",
                        extra={
                            "function": getattr(func, "__name__", str(func)),
                            "error": str(exc),
                            "attempts": self.max_retries,
                        },
                    )
                    raise
                delay = self.delay_for(attempt)
                self.logger.warning(
                    f"Attempt {attempt} failed, retrying in {delay:.2f}s",
                    extra={"error": str(exc)},
                )
                await asyncio.sleep(delay)
