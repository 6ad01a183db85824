"""Reminder dispatch for upcoming calendar events."""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, MutableMapping, Optional

import requests

from event_parser.models import CalendarEvent

logger = logging.getLogger(__name__)

# Keys of events that started longer ago than this are forgotten
FORGET_AFTER = timedelta(hours=1)

REMINDER_OPTIONS = [
    (0, '不提醒'),
    (1, '1分钟前'),
    (5, '5分钟前'),
    (10, '10分钟前'),
    (15, '15分钟前'),
    (30, '30分钟前'),
    (60, '1小时前'),
]


def reminder_key(event: CalendarEvent) -> str:
    """Key identifying one occurrence: defining event id plus start in ms."""
    event_id = event.original_event_id or event.id
    return f"{event_id}_{int(event.start.timestamp() * 1000)}"


def reminder_label(minutes: Optional[int]) -> str:
    for value, label in REMINDER_OPTIONS:
        if value == minutes:
            return label
    return '不提醒'


def reminder_time(event: CalendarEvent) -> datetime:
    return event.start - timedelta(minutes=event.reminder or 0)


def format_notification_body(event: CalendarEvent) -> str:
    """Build the notification text, e.g. "15:00 开始 · 星巴克"."""
    time_text = '全天' if event.is_all_day else event.start.strftime('%H:%M')
    body = f'{time_text} 开始'
    if event.location:
        body += f' · {event.location}'
    if event.attendees:
        body += f" · 参与者: {'、'.join(event.attendees)}"
    return body


@dataclass
class UpcomingReminder:
    """Next reminder that has not fired yet."""
    event: CalendarEvent
    reminder_time: datetime
    time_until: timedelta


class ReminderDispatcher:
    """Sends due event reminders to a webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout: int = 30,
        window_seconds: int = 60,
        max_retries: int = 3
    ):
        """
        Initialize the reminder dispatcher.

        Args:
            webhook_url: URL that receives one JSON POST per reminder
            timeout: HTTP request timeout in seconds (default: 30)
            window_seconds: How long after its reminder time an event is
                still considered due; match it to the schedule period
            max_retries: Attempts per notification (default: 3)
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.window = timedelta(seconds=window_seconds)
        self.max_retries = max_retries

    def due_reminders(
        self,
        events: List[CalendarEvent],
        now: datetime,
        notified: MutableMapping[str, datetime]
    ) -> List[CalendarEvent]:
        """
        Select occurrences whose reminder time falls in the current window.

        Args:
            events: Expanded occurrences to check
            now: Current wall-clock time
            notified: Caller-owned store of already-notified keys

        Returns:
            Events that should be notified now
        """
        due = []
        for event in events:
            if not event.reminder:
                continue

            key = reminder_key(event)
            if now - event.start > FORGET_AFTER:
                notified.pop(key, None)
                continue
            if key in notified:
                continue

            elapsed = now - reminder_time(event)
            if timedelta(0) <= elapsed < self.window:
                due.append(event)
        return due

    def check_and_send(
        self,
        events: List[CalendarEvent],
        now: datetime,
        notified: MutableMapping[str, datetime]
    ) -> int:
        """
        Send every due reminder and record it in the notified store.

        Args:
            events: Expanded occurrences to check
            now: Current wall-clock time
            notified: Caller-owned store of already-notified keys

        Returns:
            Number of reminders sent
        """
        sent_count = 0
        for event in self.due_reminders(events, now, notified):
            key = reminder_key(event)
            if self.send_notification(event, key):
                notified[key] = now
                sent_count += 1
                logger.info(f"Reminder sent: {event.title}")
            else:
                logger.warning(f"Reminder failed: {event.title}")

        logger.info(f"Sent {sent_count} reminders")
        return sent_count

    def next_reminder(
        self,
        events: List[CalendarEvent],
        now: datetime,
        notified: MutableMapping[str, datetime]
    ) -> Optional[UpcomingReminder]:
        """Return the soonest reminder that is still in the future."""
        upcoming = None
        for event in events:
            if not event.reminder or reminder_key(event) in notified:
                continue

            fire_at = reminder_time(event)
            time_until = fire_at - now
            if time_until > timedelta(0) and (
                upcoming is None or time_until < upcoming.time_until
            ):
                upcoming = UpcomingReminder(event, fire_at, time_until)
        return upcoming

    def send_notification(self, event: CalendarEvent, key: str) -> bool:
        """
        POST a reminder to the webhook with retry logic.

        Args:
            event: Occurrence to remind about
            key: Reminder key, sent as the notification tag

        Returns:
            True if the webhook accepted the notification
        """
        payload = {
            'title': event.title,
            'body': format_notification_body(event),
            'tag': key,
            'eventId': event.original_event_id or event.id,
            'start': event.start.isoformat(),
        }

        base_delay = 1  # seconds

        for attempt in range(self.max_retries):
            try:
                response = requests.post(
                    self.webhook_url,
                    json=payload,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return True

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Notification failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} notification attempts failed. Last error: {e}"
                    )
        return False
