"""
Daily request budget for the paid forecast API.

Every HTTP attempt, retries included, is charged against the budget so a
burst of retries cannot push the day's request count past the cap.
"""

import logging
import threading
from datetime import date, datetime, timezone
from typing import Callable, Optional

from dive_forecast.errors import RequestBudgetExceededError

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RequestBudget:
    """
    Thread-safe counter of upstream requests per UTC day.

    The count resets the first time it is touched on a new date.
    """

    def __init__(
        self,
        daily_cap: int = 100,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the budget.

        Args:
            daily_cap: Maximum requests per UTC day
            clock: Returns the current time; defaults to UTC now
        """
        self.daily_cap = daily_cap
        self._clock = clock or _utc_now
        self._day: Optional[date] = None
        self._used = 0
        self.lock = threading.Lock()

    def _roll_day(self) -> None:
        today = self._clock().date()
        if today != self._day:
            if self._day is not None:
                logger.info(f"Request budget reset for {today} ({self._used} used on {self._day})")
            self._day = today
            self._used = 0

    def consume(self) -> None:
        """
        Charge one request against today's budget.

        Raises:
            RequestBudgetExceededError: If the cap has been reached
        """
        with self.lock:
            self._roll_day()
            if self._used >= self.daily_cap:
                raise RequestBudgetExceededError(
                    f"Daily request budget of {self.daily_cap} exhausted"
                )
            self._used += 1
            if self._used == int(self.daily_cap * 0.8):
                logger.warning(f"Request budget at {self._used}/{self.daily_cap} for {self._day}")

    @property
    def remaining(self) -> int:
        with self.lock:
            self._roll_day()
            return self.daily_cap - self._used

    def get_status(self) -> dict:
        """Get current budget status for debugging."""
        with self.lock:
            self._roll_day()
            return {
                "day": self._day.isoformat(),
                "used": self._used,
                "daily_cap": self.daily_cap,
            }
