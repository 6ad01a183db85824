"""iCalendar (RFC 5545) export of calendar events."""
import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from icalendar import Calendar, Event, vCalAddress

from event_parser.models import CalendarEvent, RecurrenceRule

logger = logging.getLogger(__name__)

PRODID = '-//AI Calendar//AI Schedule Planning//CN'
CALENDAR_NAME = 'AI 日程规划'
CALENDAR_TIMEZONE = 'Asia/Shanghai'
UID_DOMAIN = 'ai-calendar'

WHITESPACE = re.compile(r'\s+')
UNSAFE_FILENAME_CHARS = re.compile('[^a-zA-Z0-9\u4e00-\u9fa5]')


def generate_ics(events: Iterable[CalendarEvent], now: Optional[datetime] = None) -> str:
    """
    Render events as the text of an .ics file.

    Args:
        events: Events to export
        now: Timestamp written as DTSTAMP (default: now)

    Returns:
        iCalendar text with CRLF line endings
    """
    now = now or datetime.now()

    calendar = Calendar()
    calendar.add('prodid', PRODID)
    calendar.add('version', '2.0')
    calendar.add('calscale', 'GREGORIAN')
    calendar.add('method', 'PUBLISH')
    calendar.add('x-wr-calname', CALENDAR_NAME)
    calendar.add('x-wr-timezone', CALENDAR_TIMEZONE)

    count = 0
    for event in events:
        calendar.add_component(_event_to_vevent(event, now))
        count += 1

    logger.info(f"Exported {count} events to iCalendar")
    return calendar.to_ical().decode('utf-8')


def _event_to_vevent(event: CalendarEvent, now: datetime) -> Event:
    vevent = Event()
    vevent.add('uid', f'{event.id}@{UID_DOMAIN}')
    vevent.add('dtstamp', now)

    if event.is_all_day:
        vevent.add('dtstart', event.start.date())
        vevent.add('dtend', _all_day_end(event))
    else:
        vevent.add('dtstart', event.start)
        vevent.add('dtend', event.end)

    vevent.add('summary', event.title)
    if event.location:
        vevent.add('location', event.location)
    if event.description:
        vevent.add('description', event.description)

    for attendee in event.attendees or []:
        mailbox = WHITESPACE.sub('', attendee.lower())
        address = vCalAddress(f'mailto:{mailbox}@example.com')
        address.params['cn'] = attendee
        vevent.add('attendee', address, encode=0)

    if event.created_at:
        vevent.add('created', event.created_at)
    if event.updated_at:
        vevent.add('last-modified', event.updated_at)

    if event.recurrence:
        vevent.add('rrule', _rrule_value(event.recurrence))

    return vevent


def _all_day_end(event: CalendarEvent) -> date:
    # DTEND of a DATE event is exclusive
    end_date = event.end.date()
    if event.end.time() == time(0) and end_date > event.start.date():
        return end_date
    return end_date + timedelta(days=1)


def _rrule_value(rule: RecurrenceRule) -> dict:
    value = {'freq': rule.freq.value.upper(), 'interval': rule.interval}
    if rule.by_day:
        value['byday'] = [day.value for day in rule.by_day]
    if rule.by_month_day is not None:
        value['bymonthday'] = rule.by_month_day
    if rule.until:
        value['until'] = rule.until
    if rule.count is not None:
        value['count'] = rule.count
    return value


def generate_filename(prefix: str = 'ai-calendar', today: Optional[date] = None) -> str:
    """Build a dated export file name such as ``ai-calendar-2024-01-02.ics``."""
    today = today or date.today()
    return f"{prefix}-{today.strftime('%Y-%m-%d')}.ics"


def safe_filename(title: str) -> str:
    """Build a file name for a single-event export from its title."""
    safe_title = UNSAFE_FILENAME_CHARS.sub('-', title)[:20]
    return f'{safe_title}.ics'
