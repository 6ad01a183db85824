"""Data models for parsed and stored calendar events."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class EventType(Enum):
    """Event classification with its fixed display color."""
    MEETING = 'meeting'
    TASK = 'task'
    REMINDER = 'reminder'
    PERSONAL = 'personal'
    OTHER = 'other'

    @property
    def color(self) -> str:
        return EVENT_COLORS[self]


EVENT_COLORS = {
    EventType.MEETING: '#3b82f6',
    EventType.TASK: '#22c55e',
    EventType.REMINDER: '#eab308',
    EventType.PERSONAL: '#a855f7',
    EventType.OTHER: '#6b7280',
}


class Frequency(Enum):
    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'
    YEARLY = 'yearly'


class WeekDay(Enum):
    """iCalendar weekday tokens."""
    MO = 'MO'
    TU = 'TU'
    WE = 'WE'
    TH = 'TH'
    FR = 'FR'
    SA = 'SA'
    SU = 'SU'

    @property
    def weekday(self) -> int:
        """Python weekday number (Monday is 0)."""
        return list(WeekDay).index(self)

    @classmethod
    def from_weekday(cls, weekday: int) -> 'WeekDay':
        return list(cls)[weekday]


class DeleteScope(Enum):
    """How far a delete reaches into a recurring series."""
    THIS = 'this'
    FUTURE = 'future'
    ALL = 'all'


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class RecurrenceRule:
    """Recurrence rule modelled on RFC 5545 RRULE."""
    freq: Frequency
    interval: int = 1
    by_day: Optional[List[WeekDay]] = None
    by_month_day: Optional[int] = None
    until: Optional[datetime] = None
    count: Optional[int] = None

    def __post_init__(self):
        if not self.interval or self.interval < 1:
            object.__setattr__(self, 'interval', 1)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'freq': self.freq.value,
            'interval': self.interval,
        }
        if self.by_day:
            data['byDay'] = [day.value for day in self.by_day]
        if self.by_month_day is not None:
            data['byMonthDay'] = self.by_month_day
        if self.until:
            data['until'] = _to_iso(self.until)
        if self.count is not None:
            data['count'] = self.count
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RecurrenceRule':
        by_day = data.get('byDay')
        by_month_day = data.get('byMonthDay')
        count = data.get('count')
        return cls(
            freq=Frequency(data['freq']),
            interval=int(data.get('interval') or 1),
            by_day=[WeekDay(day) for day in by_day] if by_day else None,
            by_month_day=int(by_month_day) if by_month_day is not None else None,
            until=_from_iso(data.get('until')),
            count=int(count) if count is not None else None,
        )


@dataclass(frozen=True)
class ParseMeta:
    """Parser bookkeeping attached to every result."""
    confidence: float
    raw_input: str
    parsed_at: datetime
    warnings: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'confidence': self.confidence,
            'rawInput': self.raw_input,
            'parsedAt': _to_iso(self.parsed_at),
        }
        if self.warnings:
            data['warnings'] = list(self.warnings)
        return data


@dataclass(frozen=True)
class ParsedEventData:
    """Structured event produced by a single parse call."""
    id: str
    title: str
    start: datetime
    end: datetime
    is_all_day: bool
    type: EventType
    meta: ParseMeta
    location: Optional[str] = None
    attendees: Optional[List[str]] = None
    recurrence: Optional[RecurrenceRule] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'id': self.id,
            'title': self.title,
            'start': _to_iso(self.start),
            'end': _to_iso(self.end),
            'isAllDay': self.is_all_day,
            'type': self.type.value,
            'meta': self.meta.to_dict(),
        }
        if self.location:
            data['location'] = self.location
        if self.attendees:
            data['attendees'] = list(self.attendees)
        if self.recurrence:
            data['recurrence'] = self.recurrence.to_dict()
        return data


@dataclass
class CalendarEvent:
    """Persisted calendar event, or a transient occurrence of one."""
    id: str
    title: str
    start: datetime
    end: datetime
    is_all_day: bool = False
    type: EventType = EventType.OTHER
    location: Optional[str] = None
    description: Optional[str] = None
    attendees: Optional[List[str]] = None
    recurrence: Optional[RecurrenceRule] = None
    reminder: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    original_event_id: Optional[str] = None
    is_recurring_instance: bool = False

    @property
    def color(self) -> str:
        return self.type.color

    @classmethod
    def from_parsed(
        cls,
        parsed: ParsedEventData,
        now: Optional[datetime] = None,
        reminder: Optional[int] = None
    ) -> 'CalendarEvent':
        """Create a stored event from a confirmed parse result."""
        now = now or datetime.now()
        return cls(
            id=parsed.id,
            title=parsed.title,
            start=parsed.start,
            end=parsed.end,
            is_all_day=parsed.is_all_day,
            type=parsed.type,
            location=parsed.location,
            attendees=list(parsed.attendees) if parsed.attendees else None,
            recurrence=parsed.recurrence,
            reminder=reminder,
            created_at=now,
            updated_at=now,
        )

    def touch(self, now: Optional[datetime] = None) -> 'CalendarEvent':
        """Return a copy with updated_at bumped."""
        return replace(self, updated_at=now or datetime.now())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'id': self.id,
            'title': self.title,
            'start': _to_iso(self.start),
            'end': _to_iso(self.end),
            'isAllDay': self.is_all_day,
            'type': self.type.value,
            'color': self.color,
            'createdAt': _to_iso(self.created_at),
            'updatedAt': _to_iso(self.updated_at),
        }
        if self.location:
            data['location'] = self.location
        if self.description:
            data['description'] = self.description
        if self.attendees:
            data['attendees'] = list(self.attendees)
        if self.recurrence:
            data['recurrence'] = self.recurrence.to_dict()
        if self.reminder is not None:
            data['reminder'] = self.reminder
        if self.original_event_id:
            data['originalEventId'] = self.original_event_id
            data['isRecurringInstance'] = self.is_recurring_instance
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CalendarEvent':
        recurrence = data.get('recurrence')
        reminder = data.get('reminder')
        start = datetime.fromisoformat(data['start'])
        return cls(
            id=data['id'],
            title=data['title'],
            start=start,
            end=datetime.fromisoformat(data['end']),
            is_all_day=bool(data.get('isAllDay', False)),
            type=EventType(data.get('type') or EventType.OTHER.value),
            location=data.get('location'),
            description=data.get('description'),
            attendees=list(data['attendees']) if data.get('attendees') else None,
            recurrence=RecurrenceRule.from_dict(recurrence) if recurrence else None,
            reminder=int(reminder) if reminder is not None else None,
            created_at=_from_iso(data.get('createdAt')) or start,
            updated_at=_from_iso(data.get('updatedAt')) or start,
            original_event_id=data.get('originalEventId'),
            is_recurring_instance=bool(data.get('isRecurringInstance', False)),
        )


@dataclass
class ConflictResult:
    """Outcome of a conflict check."""
    has_conflict: bool
    conflicts: List[CalendarEvent]
