"""Clock capability so time-based policy can be driven deterministically"""

from datetime import datetime, timedelta, timezone


class SystemClock:
    """Wall clock returning naive UTC, matching how timestamps are stored"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FrozenClock:
    """Clock pinned to a moment; advance() moves it forward"""

    def __init__(self, moment: datetime):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, **delta) -> datetime:
        self.moment = self.moment + timedelta(**delta)
        return self.moment


system_clock = SystemClock()
