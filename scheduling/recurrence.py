"""Expansion of recurring events into concrete occurrences."""
import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import List

from event_parser.date_math import add_months, add_years
from event_parser.models import CalendarEvent, Frequency, RecurrenceRule, WeekDay

logger = logging.getLogger(__name__)

# Cap on generated occurrences when the rule has no count (about a year of weeks)
DEFAULT_MAX_INSTANCES = 52

WEEKDAY_NAMES = {
    WeekDay.MO: '周一',
    WeekDay.TU: '周二',
    WeekDay.WE: '周三',
    WeekDay.TH: '周四',
    WeekDay.FR: '周五',
    WeekDay.SA: '周六',
    WeekDay.SU: '周日',
}

WORKDAYS = {WeekDay.MO, WeekDay.TU, WeekDay.WE, WeekDay.TH, WeekDay.FR}


def generate_recurring_instances(
    event: CalendarEvent,
    range_start: datetime,
    range_end: datetime
) -> List[CalendarEvent]:
    """
    Generate the occurrences of an event inside a display window.

    The first occurrence keeps the defining event's id, later ones get
    ``<id>_instance_<n>``. Weekly rules are scanned one day at a time,
    so their interval is not applied.

    Args:
        event: Defining event, with or without a recurrence rule
        range_start: Start of the window
        range_end: End of the window (inclusive)

    Returns:
        Ordered list of occurrences; ``[event]`` when it does not recur
    """
    rule = event.recurrence
    if not rule:
        return [event]

    instances: List[CalendarEvent] = []
    duration = event.end - event.start
    max_instances = rule.count or DEFAULT_MAX_INSTANCES
    current = event.start

    while current <= range_end and len(instances) < max_instances:
        if rule.until and current > rule.until:
            break

        if current >= range_start and _is_eligible(rule, event.start, current):
            instance_start = current.replace(
                hour=event.start.hour,
                minute=event.start.minute,
                second=event.start.second
            )
            count = len(instances)
            instances.append(replace(
                event,
                id=event.id if count == 0 else f"{event.id}_instance_{count}",
                start=instance_start,
                end=instance_start + duration,
                original_event_id=event.id,
                is_recurring_instance=count > 0
            ))

        current = _advance(rule, current)

    logger.debug(
        f"Expanded event {event.id} into {len(instances)} occurrences",
        extra={'freq': rule.freq.value}
    )
    return instances


def _is_eligible(rule: RecurrenceRule, original: datetime, current: datetime) -> bool:
    if rule.freq is Frequency.DAILY:
        return True
    if rule.freq is Frequency.WEEKLY:
        if not rule.by_day:
            return True
        return WeekDay.from_weekday(current.weekday()) in rule.by_day
    if rule.freq is Frequency.MONTHLY:
        if rule.by_month_day:
            return current.day == rule.by_month_day
        return current.day == original.day
    if rule.freq is Frequency.YEARLY:
        return current.month == original.month and current.day == original.day
    return False


def _advance(rule: RecurrenceRule, current: datetime) -> datetime:
    if rule.freq is Frequency.DAILY:
        return current + timedelta(days=rule.interval)
    if rule.freq is Frequency.WEEKLY:
        # TODO: honour interval for weekly rules once every-other-week semantics are agreed
        return current + timedelta(days=1)
    if rule.freq is Frequency.MONTHLY:
        return add_months(current, rule.interval)
    return add_years(current, rule.interval)


def expand_recurring_events(
    events: List[CalendarEvent],
    range_start: datetime,
    range_end: datetime
) -> List[CalendarEvent]:
    """Expand every event of a list over the same window."""
    expanded: List[CalendarEvent] = []
    for event in events:
        expanded.extend(generate_recurring_instances(event, range_start, range_end))
    return expanded


def format_recurrence_rule(rule: RecurrenceRule) -> str:
    """Describe a recurrence rule in Chinese, e.g. "每个工作日"."""
    if rule.freq is Frequency.DAILY:
        return '每天' if rule.interval == 1 else f'每{rule.interval}天'

    if rule.freq is Frequency.WEEKLY:
        if rule.by_day:
            if len(rule.by_day) == 5 and set(rule.by_day) == WORKDAYS:
                return '每个工作日'
            days = '、'.join(WEEKDAY_NAMES[day] for day in rule.by_day)
            return f'每{days}'
        return '每周' if rule.interval == 1 else f'每{rule.interval}周'

    if rule.freq is Frequency.MONTHLY:
        if rule.by_month_day:
            return f'每月{rule.by_month_day}号'
        return '每月' if rule.interval == 1 else f'每{rule.interval}个月'

    if rule.freq is Frequency.YEARLY:
        return '每年' if rule.interval == 1 else f'每{rule.interval}年'

    return '重复'
