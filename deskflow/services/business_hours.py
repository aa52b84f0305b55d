from datetime import datetime, time, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from deskflow.config import settings
from deskflow.services.interfaces import BusinessHoursOracle


class BusinessHours(BusinessHoursOracle):
    """Weekly opening window in a fixed timezone (Mon-Fri 9-17 by default)."""

    def __init__(
        self,
        tz_name: Optional[str] = None,
        open_hour: Optional[int] = None,
        close_hour: Optional[int] = None,
        weekdays: Optional[set[int]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.tz = ZoneInfo(tz_name or settings.business_timezone)
        self.open_hour = settings.business_open_hour if open_hour is None else open_hour
        self.close_hour = settings.business_close_hour if close_hour is None else close_hour
        self.weekdays = weekdays if weekdays is not None else settings.open_weekdays()
        self._clock = clock

    def now(self) -> datetime:
        current = self._clock() if self._clock else datetime.now(self.tz)
        if current.tzinfo is None:
            return current.replace(tzinfo=self.tz)
        return current.astimezone(self.tz)

    def is_open_at(self, moment: datetime) -> bool:
        if moment.weekday() not in self.weekdays:
            return False
        return self.open_hour <= moment.hour < self.close_hour

    def is_open_now(self) -> bool:
        return self.is_open_at(self.now())

    def next_open_time(self) -> datetime:
        """Now if open, otherwise the next opening moment."""
        current = self.now()
        if self.is_open_at(current):
            return current
        candidate = current
        if current.hour >= self.open_hour:
            candidate = current + timedelta(days=1)
        for _ in range(8):
            if candidate.weekday() in self.weekdays:
                return datetime.combine(candidate.date(), time(self.open_hour), tzinfo=self.tz)
            candidate = candidate + timedelta(days=1)
        raise ValueError("No business days configured")

    def describe_next_open(self) -> str:
        opening = self.next_open_time()
        days = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]
        return f"{days[opening.weekday()]} {opening.strftime('%d/%m')} a las {opening.strftime('%H:%M')}"
