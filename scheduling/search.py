"""Keyword search over calendar events."""
from typing import Iterable, List

from event_parser.models import CalendarEvent


def search_events(events: Iterable[CalendarEvent], query: str) -> List[CalendarEvent]:
    """
    Return events whose title, location or an attendee contains the query.

    Matching is case-insensitive; a blank query matches nothing.
    """
    if not query or not query.strip():
        return []

    needle = query.strip().lower()
    results = []
    for event in events:
        if needle in event.title.lower():
            results.append(event)
        elif event.location and needle in event.location.lower():
            results.append(event)
        elif event.attendees and any(needle in name.lower() for name in event.attendees):
            results.append(event)
    return results
