"""Retry and request-budget helpers for upstream calls."""

from dive_forecast.utils.request_budget import RequestBudget
from dive_forecast.utils.retry import create_retry_decorator, is_retryable_error

__all__ = [
    "RequestBudget",
    "create_retry_decorator",
    "is_retryable_error",
]
