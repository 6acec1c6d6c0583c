"""Wall-clock access, injectable for deterministic scheduling."""

from datetime import date, datetime


class Clock:
    """Local wall-clock time. No timezone model."""

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """Clock frozen at a given moment."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment


system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency for the wall clock."""
    return system_clock
