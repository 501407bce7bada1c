# Time period class used by the availability engine
from datetime import datetime


class Period:
    """
    Defined as a pair of aware datetime objects, treated as the half-open interval [begin, end).
    """

    def __init__(self, begin_period: datetime, end_period: datetime):
        self.begin_period = begin_period
        self.end_period = end_period

    @property
    def begin_period(self) -> datetime:
        return self._begin_period

    @begin_period.setter
    def begin_period(self, begin_period: datetime):
        self._begin_period = begin_period

    @property
    def end_period(self) -> datetime:
        return self._end_period

    @end_period.setter
    def end_period(self, end_period: datetime):
        self._end_period = end_period

    def overlaps(self, other: "Period") -> bool:
        # Touching endpoints do not overlap: a slot ending at 11:00 is free of an event starting at 11:00
        return self.begin_period < other.end_period and self.end_period > other.begin_period

    def __eq__(self, other):
        if not isinstance(other, Period):
            return NotImplemented
        return self.begin_period == other.begin_period and self.end_period == other.end_period

    def __repr__(self):
        return f"Period({self.begin_period.isoformat()}, {self.end_period.isoformat()})"
