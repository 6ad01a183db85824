"""Phrase patterns and keyword tables for the Chinese event parser."""
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from event_parser.models import EventType, Frequency, RecurrenceRule, WeekDay

# Weekday characters as written after 周 / 星期
WEEKDAY_CHARS = {
    '一': WeekDay.MO,
    '二': WeekDay.TU,
    '三': WeekDay.WE,
    '四': WeekDay.TH,
    '五': WeekDay.FR,
    '六': WeekDay.SA,
    '日': WeekDay.SU,
    '天': WeekDay.SU,
}

# Day periods
MORNING_PATTERN = re.compile(r'早上|上午|凌晨')
NOON_PATTERN = re.compile(r'中午')
AFTERNOON_PATTERN = re.compile(r'下午')
EVENING_PATTERN = re.compile(r'晚上')

# Time points, ranges and durations
TIME_POINT_PATTERN = re.compile(r'(\d{1,2})点(半)?')
TIME_RANGE_PATTERN = re.compile(r'(\d{1,2})点.*?到(\d{1,2})点')
DURATION_PATTERN = re.compile(r'(?<!\d)(\d+)\s*(分钟|小时)')
HALF_HOUR_PATTERN = re.compile(r'半小时|半个小时')
ALL_DAY_PATTERN = re.compile(r'全天|一整天|休假|放假')

# Location and attendee clauses
LOCATION_PATTERN = re.compile(r'在([^\s,，、]+?)(?:讨论|开会|见面|聊|吃|$)')
ATTENDEE_PATTERN = re.compile(r'和([^\s,，、在]+?)(?:在|讨论|开会|见面|聊|吃|$)')

# Tokens removed from the input when building the title, in order
TITLE_STRIP_PATTERNS: List[re.Pattern] = [
    re.compile(r'今天|明天|大后天|后天'),
    re.compile(r'下周[一二三四五六日天]'),
    re.compile(r'[这本]周[一二三四五六日天]'),
    re.compile(r'下个月\d{1,2}[号日]'),
    re.compile(r'\d{1,2}月\d{1,2}[号日]'),
    re.compile(r'\d{1,4}天后'),
    re.compile(r'早上|上午|凌晨|中午|下午|晚上'),
    re.compile(r'到\d{1,2}点(半)?'),
    re.compile(r'\d{1,2}点(半)?'),
    re.compile(r'\d+\s*(分钟|小时)'),
    re.compile(r'半小时|半个小时'),
    re.compile(r'全天|一整天'),
]

RECURRENCE_STRIP_PATTERN = re.compile(
    r'每个?工作日|工作日|每(?:两|2|隔一)周[一二三四五六日天]*|每周[一二三四五六日天]*'
    r'|每\d+天|每天|每日|每个?月\d{1,2}[号日]|每个?月|每年'
)
LEADING_CONNECTOR_PATTERN = re.compile(r'^[到至]')
WHITESPACE_PATTERN = re.compile(r'\s+')

DEFAULT_TITLE = '新日程'

# Event type keywords, highest priority first
TYPE_RULES: List[Tuple[EventType, re.Pattern]] = [
    (EventType.MEETING, re.compile(r'会议|开会|讨论|评审|站会|例会')),
    (EventType.TASK, re.compile(r'任务|完成|提交|做|写')),
    (EventType.REMINDER, re.compile(r'提醒|记得|别忘了')),
    (EventType.PERSONAL, re.compile(r'约会|聚餐|看电影|健身|休假|放假|吃饭|逛街')),
]


def parse_weekdays(chars: str) -> List[WeekDay]:
    """Turn a run like ``一三五`` into weekday tokens, dropping repeats."""
    days: List[WeekDay] = []
    for char in chars:
        day = WEEKDAY_CHARS.get(char)
        if day and day not in days:
            days.append(day)
    return days


@dataclass(frozen=True)
class RecurrencePhrase:
    """A recurrence phrase and the rule it produces."""
    name: str
    pattern: re.Pattern
    build: Callable[[re.Match], RecurrenceRule]


def _weekly(match: re.Match, interval: int = 1) -> RecurrenceRule:
    days = parse_weekdays(match.group(1) or '')
    return RecurrenceRule(
        freq=Frequency.WEEKLY,
        interval=interval,
        by_day=days or None
    )


WORKDAYS = [WeekDay.MO, WeekDay.TU, WeekDay.WE, WeekDay.TH, WeekDay.FR]

RECURRENCE_PHRASES: List[RecurrencePhrase] = [
    RecurrencePhrase(
        'workdays',
        re.compile(r'工作日'),
        lambda m: RecurrenceRule(freq=Frequency.WEEKLY, by_day=list(WORKDAYS))
    ),
    RecurrencePhrase(
        'biweekly',
        re.compile(r'每(?:两|2|隔一)周([一二三四五六日天]*)'),
        lambda m: _weekly(m, interval=2)
    ),
    RecurrencePhrase(
        'weekly',
        re.compile(r'每周([一二三四五六日天]*)'),
        _weekly
    ),
    RecurrencePhrase(
        'every_n_days',
        re.compile(r'每(\d+)天'),
        lambda m: RecurrenceRule(freq=Frequency.DAILY, interval=int(m.group(1)))
    ),
    RecurrencePhrase(
        'daily',
        re.compile(r'每天|每日'),
        lambda m: RecurrenceRule(freq=Frequency.DAILY)
    ),
    RecurrencePhrase(
        'monthly_on_day',
        re.compile(r'每个?月(\d{1,2})[号日]'),
        lambda m: RecurrenceRule(
            freq=Frequency.MONTHLY,
            by_month_day=int(m.group(1))
        )
    ),
    RecurrencePhrase(
        'monthly',
        re.compile(r'每个?月'),
        lambda m: RecurrenceRule(freq=Frequency.MONTHLY)
    ),
    RecurrencePhrase(
        'yearly',
        re.compile(r'每年'),
        lambda m: RecurrenceRule(freq=Frequency.YEARLY)
    ),
]


def classify_type(text: str) -> EventType:
    """Return the first event type whose keywords appear in the text."""
    for event_type, pattern in TYPE_RULES:
        if pattern.search(text):
            return event_type
    return EventType.OTHER


def extract_location(text: str) -> Optional[str]:
    match = LOCATION_PATTERN.search(text)
    return match.group(1) if match else None


def extract_attendees(text: str) -> Optional[List[str]]:
    # Only a single "和<name>" clause is recognized
    match = ATTENDEE_PATTERN.search(text)
    return [match.group(1)] if match else None


def match_recurrence(text: str) -> Optional[RecurrenceRule]:
    """Return the rule for the first recurrence phrase found, if any."""
    for phrase in RECURRENCE_PHRASES:
        match = phrase.pattern.search(text)
        if match:
            return phrase.build(match)
    return None
