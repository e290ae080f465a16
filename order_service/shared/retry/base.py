import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from order_service.shared.logger import JohnWickLogger


class RetryPolicy(ABC):
    """
    Base class for retry policies.

    Subclasses only decide how long to wait before the next attempt; the attempt
    loop, cancellation handling and logging live here.

    Args:
        max_retries: Total number of attempts, including the first one.
        retry_on: Exception types worth retrying. Anything else is raised at once.
    """

    def __init__(
        self,
        max_retries: int = 3,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        logger: Optional[JohnWickLogger] = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.retry_on = retry_on
        self.logger = logger or JohnWickLogger(name=self.__class__.__name__)

    @abstractmethod
    def delay_for(self, attempt: int) -> float:
        """Seconds to sleep after the given (1-based) failed attempt."""

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await `func(*args, **kwargs)` until it succeeds or attempts run out.

        Raises:
            The last exception raised by `func` once retries are exhausted.
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                return await func(*args, **kwargs)
            except asyncio.CancelledError:
                raise
            except self.retry_on as exc:
                if attempt == self.max_retries:
                    self.logger.error(
                        "Retries exhausted",
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
