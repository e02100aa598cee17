"""Nightly maintenance window during which new sessions should not start."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

CLOSED_MESSAGE = (
    "Our server undergoes scheduled maintenance between {start} and {end} {tz}. "
    "Please return any other time! Thank you."
)


@dataclass
class StudyWindow:
    maintenance_start: time
    maintenance_end: time
    timezone: str = "America/New_York"

    def in_maintenance(self, at: Optional[datetime] = None) -> bool:
        """Naive datetimes are taken as already in the study timezone."""
        tz = ZoneInfo(self.timezone)
        if at is None:
            at = datetime.now(tz)
        elif at.tzinfo is not None:
            at = at.astimezone(tz)
        now = at.time().replace(second=0, microsecond=0)
        start, end = self.maintenance_start, self.maintenance_end
        if start <= end:
            return start <= now < end
        # Window wraps past midnight, e.g. 23:00-00:05
        return now >= start or now < end

    def is_open(self, at: Optional[datetime] = None) -> bool:
        return not self.in_maintenance(at)

    def message(self) -> str:
        return CLOSED_MESSAGE.format(
            start=self.maintenance_start.strftime("%I:%M%p").lstrip("0"),
            end=self.maintenance_end.strftime("%I:%M%p").lstrip("0"),
            tz=self.timezone,
        )
