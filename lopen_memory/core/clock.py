"""Time source and timestamp formatting.

All timestamps are stored as UTC strings in ``YYYY-MM-DDTHH:MM:SSZ``
form so they sort lexically. The clock is injected into the store so
tests can pin "now".
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Protocol, Union

from lopen_memory.core.errors import InvalidArgumentError

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
MIN_YEAR = 1000
MAX_YEAR = 9999


def _utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class Clock(Protocol):
    """Anything that can tell the current UTC time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return _utc_now()


@dataclass
class FixedClock:
    """A clock that only moves when told to."""

    current: datetime = field(default_factory=_utc_now)

    def now(self) -> datetime:
        return self.current

    def set(self, moment: datetime) -> None:
        self.current = moment

    def advance(self, **kwargs) -> datetime:
        """Move forward by ``timedelta(**kwargs)`` and return the new time."""
        self.current = self.current + timedelta(**kwargs)
        return self.current


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    # strftime("%Y") does not zero-pad years below 1000 on every platform
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}Z"
    )


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp back into an aware datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def parse_date_input(value: Union[str, date, datetime]) -> datetime:
    """Parse a user-supplied date or datetime.

    Accepts ``YYYY-MM-DD`` (taken as midnight UTC) or any ISO-8601
    datetime; naive datetimes are treated as UTC. Years must fall in
    1000-9999 so stored timestamps keep a fixed width.

    Raises:
        InvalidArgumentError: If the value cannot be parsed or is out of range
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    else:
        text = value.strip()
        try:
            if len(text) == 10:
                moment = datetime.strptime(text, "%Y-%m-%d")
            else:
                if text.endswith("Z"):
                    text = text[:-1] + "+00:00"
                moment = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidArgumentError(
                f"invalid date format '{value}'; use YYYY-MM-DD or YYYY-MM-DDTHH:MM:SSZ"
            )
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    try:
        moment = moment.astimezone(timezone.utc)
    except OverflowError:
        raise InvalidArgumentError(f"date out of range: '{value}'")
    if not MIN_YEAR <= moment.year <= MAX_YEAR:
        raise InvalidArgumentError(
            f"date out of range: '{value}'; year must be between {MIN_YEAR} and {MAX_YEAR}"
        )
    return moment
