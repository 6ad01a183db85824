"""Time conflict detection between a candidate and existing events."""
from datetime import datetime
from typing import Iterable, List, Protocol

from event_parser.models import CalendarEvent, ConflictResult


class TimeSlot(Protocol):
    start: datetime
    end: datetime
    is_all_day: bool


def check_conflict(candidate: TimeSlot, existing_events: Iterable[CalendarEvent]) -> ConflictResult:
    """
    Find existing events whose time overlaps the candidate.

    Intervals are half-open, so an event ending exactly when the
    candidate starts is not a conflict. All-day events never conflict.

    Args:
        candidate: Anything with start, end and is_all_day
        existing_events: Events already on the calendar

    Returns:
        ConflictResult listing overlapping events in input order
    """
    if candidate.is_all_day:
        return ConflictResult(has_conflict=False, conflicts=[])

    conflicts = [
        event for event in existing_events
        if not event.is_all_day
        and candidate.start < event.end
        and candidate.end > event.start
    ]

    return ConflictResult(has_conflict=bool(conflicts), conflicts=conflicts)


def format_conflict_message(conflicts: List[CalendarEvent]) -> str:
    if not conflicts:
        return ''
    if len(conflicts) == 1:
        return f'与「{conflicts[0].title}」时间冲突'
    return f'与 {len(conflicts)} 个日程时间冲突'
