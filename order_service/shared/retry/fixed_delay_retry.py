from order_service.shared.retry.base import RetryPolicy


class FixedDelayRetry(RetryPolicy):
    def __init__(self, max_retries: int = 3, delay: float = 1.0, **kwargs):
        super().__init__(max_retries=max_retries, **kwargs)
        self.delay = delay

    def delay_for(self, attempt: int) -> float:
        return self.delay
