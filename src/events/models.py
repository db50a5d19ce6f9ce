"""
Data models for countdown events.
Events are immutable records; edits produce a replacement with the same id.
"""

import uuid
from dataclasses import dataclass, field, replace as dataclass_replace
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from config import settings


@dataclass(frozen=True)
class PaletteColor:
    """Named colour from the fixed event palette."""
    name: str
    hex: str


AVAILABLE_COLORS: Tuple[PaletteColor, ...] = (
    PaletteColor("Blue", "#007AFF"),
    PaletteColor("Red", "#FF3B30"),
    PaletteColor("Green", "#34C759"),
    PaletteColor("Orange", "#FF9500"),
    PaletteColor("Purple", "#AF52DE"),
    PaletteColor("Pink", "#FF2D55"),
    PaletteColor("Teal", "#30B0C7"),
    PaletteColor("Indigo", "#5856D6"),
)

AVAILABLE_ICONS: Tuple[str, ...] = (
    "calendar",
    "birthday.cake",
    "airplane",
    "gift",
    "graduationcap",
    "heart",
    "party.popper",
    "bell",
    "gamecontroller",
    "film",
    "music.note",
    "book",
    "figure.run",
    "car",
    "house",
    "briefcase",
)


def local_naive(value: datetime) -> datetime:
    """
    Convert a timezone-aware datetime to naive local wall-clock time.
    Naive values are returned unchanged.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def resolve_color(name: str) -> PaletteColor:
    """
    Look up a palette colour by name.

    Args:
        name: Colour name, e.g. "Purple"

    Returns:
        Matching PaletteColor, or Blue when the name is not in the palette
    """
    for color in AVAILABLE_COLORS:
        if color.name == name:
            return color
    return AVAILABLE_COLORS[0]


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}{'' if value == 1 else 's'}"


@dataclass(frozen=True)
class TimeRemaining:
    """Breakdown of the time left until an event."""

    days: int
    hours: int
    minutes: int
    seconds: int
    has_passed: bool

    @classmethod
    def passed(cls) -> 'TimeRemaining':
        return cls(days=0, hours=0, minutes=0, seconds=0, has_passed=True)

    @property
    def total_seconds(self) -> int:
        return self.days * 86400 + self.hours * 3600 + self.minutes * 60 + self.seconds

    @property
    def formatted(self) -> str:
        """Compact form showing the coarsest non-zero unit and the next finer ones."""
        if self.has_passed:
            return "Event passed"

        if self.days > 0:
            return f"{self.days}d {self.hours}h {self.minutes}m"
        elif self.hours > 0:
            return f"{self.hours}h {self.minutes}m {self.seconds}s"
        elif self.minutes > 0:
            return f"{self.minutes}m {self.seconds}s"
        else:
            return f"{self.seconds}s"

    @property
    def detailed_formatted(self) -> str:
        """Long form such as "2 days 1 hour 5 seconds"; never empty."""
        if self.has_passed:
            return "Event has already occurred"

        parts: List[str] = []

        if self.days > 0:
            parts.append(_plural(self.days, "day"))
        if self.hours > 0:
            parts.append(_plural(self.hours, "hour"))
        if self.minutes > 0:
            parts.append(_plural(self.minutes, "minute"))
        if self.seconds > 0 or not parts:
            parts.append(_plural(self.seconds, "second"))

        return " ".join(parts)

    def __str__(self) -> str:
        return self.formatted


@dataclass(frozen=True, eq=False)
class Event:
    """
    Countdown event data model.

    Two events are equal when their ids match, whatever their other fields.
    Dates are naive datetimes in the device's local time.
    """

    title: str
    date: datetime
    color_name: str = settings.DEFAULT_COLOR_NAME
    icon_name: str = settings.DEFAULT_ICON_NAME
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        """String representation."""
        time_str = self.date.strftime("%Y-%m-%d %H:%M")
        return f"{self.title} @ {time_str}"

    def replace(self, **changes) -> 'Event':
        """Return a copy with the given fields changed and the same id."""
        changes.pop('id', None)
        return dataclass_replace(self, **changes)

    @property
    def color(self) -> PaletteColor:
        return resolve_color(self.color_name)

    def time_remaining(self, now: Optional[datetime] = None) -> TimeRemaining:
        """
        Compute the time left until the event.

        The gap is broken down by calendar components: whole years and
        months are converted back into the calendar days they span, so a
        gap from Jan 31 to Mar 1 reads as 29 days rather than "1 month 1 day".
        Fractions of a second are dropped.

        Args:
            now: Reference instant (default: current local time)

        Returns:
            TimeRemaining; all zeros with has_passed=True once the date is reached
        """
        now = now or datetime.now()

        if self.date <= now:
            return TimeRemaining.passed()

        delta = relativedelta(self.date, now)
        anchor = now + relativedelta(years=delta.years, months=delta.months)
        days = (anchor - now).days + delta.days

        return TimeRemaining(
            days=days,
            hours=delta.hours,
            minutes=delta.minutes,
            seconds=delta.seconds,
            has_passed=False
        )

    def formatted_date(self) -> str:
        """
        Long date with short time, e.g. "January 17, 2026 at 2:30 PM".

        The order and 12-hour clock are fixed so output is the same on every
        host; only the month name and AM/PM marker follow the C locale.
        """
        hour = self.date.hour % 12 or 12
        return (
            f"{self.date:%B} {self.date.day}, {self.date.year} "
            f"at {hour}:{self.date:%M} {self.date:%p}"
        )

    def relative_date_string(self, now: Optional[datetime] = None) -> str:
        """
        Describe the event date relative to now using its largest unit.

        Args:
            now: Reference instant (default: current local time)

        Returns:
            Phrase such as "in 3 days" or "2 hours ago"
        """
        now = now or datetime.now()

        in_future = self.date >= now
        delta = relativedelta(self.date, now) if in_future else relativedelta(now, self.date)

        units = (
            (delta.years, "year"),
            (delta.months, "month"),
            (delta.days // 7, "week"),
            (delta.days, "day"),
            (delta.hours, "hour"),
            (delta.minutes, "minute"),
        )
        phrase = next(
            (_plural(value, unit) for value, unit in units if value > 0),
            _plural(delta.seconds, "second")
        )

        return f"in {phrase}" if in_future else f"{phrase} ago"

    def is_today(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        return self.date.date() == now.date()

    def is_tomorrow(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        return self.date.date() == now.date() + timedelta(days=1)

    def is_this_week(self, now: Optional[datetime] = None) -> bool:
        """True when the event falls within the next seven days."""
        now = now or datetime.now()
        return now < self.date <= now + timedelta(days=7)

    def to_dict(self) -> dict:
        """Convert to the persisted record layout."""
        return {
            'id': str(self.id),
            'title': self.title,
            'date': self.date.isoformat(),
            'colorName': self.color_name,
            'iconName': self.icon_name
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Event':
        """
        Create from a persisted record.

        Raises:
            KeyError: If a required field is missing
            ValueError: If the id or date cannot be parsed, or the date
                carries a timezone
            TypeError: If the date is not a string
        """
        date = datetime.fromisoformat(data['date'])
        if date.tzinfo is not None:
            raise ValueError(f"date must be local time without a timezone: {data['date']}")

        return cls(
            id=uuid.UUID(str(data['id'])),
            title=str(data['title']),
            date=date,
            color_name=data.get('colorName', settings.DEFAULT_COLOR_NAME),
            icon_name=data.get('iconName', settings.DEFAULT_ICON_NAME)
        )
