"""Resolve date and time phrases into a concrete start and duration."""
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional, Tuple

from event_parser import lexicon
from event_parser.date_math import roll_date

NO_DATE_WARNING = '未识别到具体日期，默认为今天'
NO_TIME_WARNING = '未识别到具体时间，默认为下午2点'
INVALID_DURATION_WARNING = '时长超出范围，默认为1小时'

DEFAULT_HOUR = 14
DEFAULT_DURATION_MINUTES = 60
ALL_DAY_MINUTES = 24 * 60


class DayPeriod(Enum):
    """Time-of-day context that decides AM/PM for bare hours."""
    MORNING = 'morning'
    AFTERNOON = 'afternoon'
    EVENING = 'evening'


@dataclass(frozen=True)
class DateRule:
    """
    A date phrase and how to turn it into a calendar date.

    Rules are tried in list order and the first pattern that matches wins.
    """
    name: str
    pattern: re.Pattern
    resolve: Callable[[re.Match, datetime], date]


def _days_ahead(days: int) -> Callable[[re.Match, datetime], date]:
    return lambda match, reference: reference.date() + timedelta(days=days)


def _next_weekday(match: re.Match, reference: datetime) -> date:
    target = lexicon.WEEKDAY_CHARS[match.group(1)].weekday
    # A zero offset becomes a full week so "下周X" never resolves to today
    offset = ((target - reference.weekday() + 7) % 7) or 7
    return reference.date() + timedelta(days=offset)


def _month_day(match: re.Match, reference: datetime) -> date:
    target = roll_date(reference.year, int(match.group(1)), int(match.group(2)))
    if target < reference.date():
        target = roll_date(target.year + 1, target.month, target.day)
    return target


def _this_week_day(match: re.Match, reference: datetime) -> date:
    target = lexicon.WEEKDAY_CHARS[match.group(1)].weekday
    monday = reference.date() - timedelta(days=reference.weekday())
    return monday + timedelta(days=target)


def _next_month_day(match: re.Match, reference: datetime) -> date:
    return roll_date(reference.year, reference.month + 1, int(match.group(1)))


def _days_later(match: re.Match, reference: datetime) -> date:
    return reference.date() + timedelta(days=int(match.group(1)))


DATE_RULES: List[DateRule] = [
    DateRule('today', re.compile(r'今天'), _days_ahead(0)),
    DateRule('tomorrow', re.compile(r'明天'), _days_ahead(1)),
    DateRule('three_days', re.compile(r'大后天'), _days_ahead(3)),
    DateRule('day_after_tomorrow', re.compile(r'后天'), _days_ahead(2)),
    DateRule('next_weekday', re.compile(r'下周([一二三四五六日天])'), _next_weekday),
    DateRule('month_day', re.compile(r'(\d{1,2})月(\d{1,2})[号日]'), _month_day),
    DateRule('this_weekday', re.compile(r'[这本]周([一二三四五六日天])'), _this_week_day),
    DateRule('next_month_day', re.compile(r'下个月(\d{1,2})[号日]'), _next_month_day),
    DateRule('days_later', re.compile(r'(?<!\d)(\d{1,4})天后'), _days_later),
]


@dataclass
class TimeResolution:
    """Resolved time of day, duration and the evidence behind them."""
    hour: int = DEFAULT_HOUR
    minute: int = 0
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    is_all_day: bool = False
    has_time_point: bool = False
    has_range: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def has_explicit_time(self) -> bool:
        return self.has_time_point or self.has_range or self.is_all_day


def resolve_date(text: str, reference: datetime) -> Tuple[date, Optional[str]]:
    """
    Resolve the target date of a phrase.

    Args:
        text: Raw input phrase
        reference: Instant that relative phrases are measured from

    Returns:
        Tuple of (target date, warning or None)
    """
    for rule in DATE_RULES:
        match = rule.pattern.search(text)
        if match:
            return rule.resolve(match, reference), None
    return reference.date(), NO_DATE_WARNING


def detect_day_period(text: str) -> Optional[DayPeriod]:
    """Return the active day period; morning wins when several appear."""
    if lexicon.MORNING_PATTERN.search(text):
        return DayPeriod.MORNING
    if lexicon.AFTERNOON_PATTERN.search(text):
        return DayPeriod.AFTERNOON
    if lexicon.EVENING_PATTERN.search(text):
        return DayPeriod.EVENING
    return None


def adjust_hour(hour: int, period: Optional[DayPeriod]) -> int:
    """
    Map a spoken 12-hour value onto the 24-hour clock.

    Morning hours stay as they are, afternoon and evening hours 1-12 move
    to the PM half, and bare hours 1-6 without any period are read as PM.
    """
    if period is DayPeriod.MORNING:
        return hour
    if period in (DayPeriod.AFTERNOON, DayPeriod.EVENING) and 1 <= hour <= 12:
        return hour + 12
    if period is None and 1 <= hour <= 6:
        return hour + 12
    return hour


def resolve_time(text: str) -> TimeResolution:
    """
    Resolve time of day and duration of a phrase.

    Later steps override earlier ones: a time range replaces the single
    time point, an explicit duration replaces the range length, and an
    all-day keyword replaces everything.

    Args:
        text: Raw input phrase

    Returns:
        TimeResolution with hour, minute, duration and warnings
    """
    resolution = TimeResolution()
    period = detect_day_period(text)

    time_match = lexicon.TIME_POINT_PATTERN.search(text)
    if time_match:
        resolution.has_time_point = True
        resolution.hour = adjust_hour(int(time_match.group(1)), period)
        resolution.minute = 30 if time_match.group(2) else 0
    elif period is DayPeriod.MORNING:
        resolution.hour = 9
    elif lexicon.NOON_PATTERN.search(text):
        resolution.hour = 12
    elif period is DayPeriod.AFTERNOON:
        resolution.hour = 14
    elif period is DayPeriod.EVENING:
        resolution.hour = 19
    else:
        resolution.hour = DEFAULT_HOUR
        resolution.warnings.append(NO_TIME_WARNING)

    range_match = lexicon.TIME_RANGE_PATTERN.search(text)
    if range_match:
        resolution.has_range = True
        start_hour = adjust_hour(int(range_match.group(1)), period)
        end_hour = adjust_hour(int(range_match.group(2)), period)
        resolution.hour = start_hour
        resolution.duration_minutes = (end_hour - start_hour) * 60

    duration_match = lexicon.DURATION_PATTERN.search(text)
    if duration_match:
        try:
            value = int(duration_match.group(1))
        except ValueError:
            # longer than the interpreter's int string limit
            resolution.warnings.append(INVALID_DURATION_WARNING)
        else:
            resolution.duration_minutes = value * 60 if duration_match.group(2) == '小时' else value
    elif lexicon.HALF_HOUR_PATTERN.search(text):
        resolution.duration_minutes = 30

    if lexicon.ALL_DAY_PATTERN.search(text):
        resolution.is_all_day = True
        resolution.hour = 0
        resolution.minute = 0
        resolution.duration_minutes = ALL_DAY_MINUTES

    return resolution
