from delivery.shared.retry.base import RetryPolicy
from delivery.shared.retry.exponential_backoff_retry import ExponentialBackoffRetry
from delivery.shared.retry.fixed_delay_retry import FixedDelayRetry

__all__ = ["RetryPolicy", "FixedDelayRetry", "ExponentialBackoffRetry"]
