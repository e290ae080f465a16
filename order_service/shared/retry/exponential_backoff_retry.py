from order_service.shared.retry.base import RetryPolicy


class ExponentialBackoffRetry(RetryPolicy):
    """Doubles the wait after every failed attempt, capped at `max_delay`."""

    def __init__(self, max_retries: int = 5, base_delay: float = 0.5, max_delay: float = 30.0, **kwargs):
        super().__init__(max_retries=max_retries, **kwargs)
        self.base_delay = base_delay
        self.max_delay = max_delay

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
