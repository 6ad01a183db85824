"""Unit tests for conflict detection and event search."""
from datetime import datetime

import pytest

from event_parser.models import CalendarEvent
from scheduling.conflict import check_conflict, format_conflict_message
from scheduling.search import search_events


def at(hour, minute=0):
    return datetime(2024, 1, 2, hour, minute)


def make_event(event_id, start, end, title='日程', is_all_day=False, **kwargs):
    return CalendarEvent(
        id=event_id,
        title=title,
        start=start,
        end=end,
        is_all_day=is_all_day,
        **kwargs
    )


class TestCheckConflict:
    """Test cases for check_conflict."""

    def test_partial_overlap_conflicts(self):
        candidate = make_event('new', at(14), at(15))
        existing = make_event('old', at(14, 30), at(15, 30))

        result = check_conflict(candidate, [existing])

        assert result.has_conflict is True
        assert result.conflicts == [existing]

    def test_touching_intervals_do_not_conflict(self):
        candidate = make_event('new', at(14), at(15))
        existing = make_event('old', at(15), at(16))

        result = check_conflict(candidate, [existing])

        assert result.has_conflict is False
        assert result.conflicts == []

    def test_containment_conflicts(self):
        candidate = make_event('new', at(13), at(17))
        existing = make_event('old', at(14), at(15))

        assert check_conflict(candidate, [existing]).has_conflict is True

    def test_all_day_candidate_never_conflicts(self):
        candidate = make_event('new', at(0), datetime(2024, 1, 3), is_all_day=True)
        existing = make_event('old', at(14), at(15))

        assert check_conflict(candidate, [existing]).conflicts == []

    def test_all_day_existing_events_are_skipped(self):
        candidate = make_event('new', at(14), at(15))
        existing = make_event('old', at(0), datetime(2024, 1, 3), is_all_day=True)

        assert check_conflict(candidate, [existing]).has_conflict is False

    def test_conflicts_keep_input_order(self):
        candidate = make_event('new', at(9), at(18))
        existing = [
            make_event('c', at(16), at(17)),
            make_event('a', at(10), at(11)),
            make_event('skip', at(19), at(20)),
            make_event('b', at(12), at(13)),
        ]

        result = check_conflict(candidate, existing)

        assert [e.id for e in result.conflicts] == ['c', 'a', 'b']

    @pytest.mark.parametrize('first,second', [
        ((at(14), at(15)), (at(14, 30), at(15, 30))),
        ((at(14), at(15)), (at(15), at(16))),
        ((at(9), at(10)), (at(11), at(12))),
        ((at(9), at(18)), (at(10), at(11))),
    ])
    def test_verdict_is_symmetric(self, first, second):
        a = make_event('a', *first)
        b = make_event('b', *second)

        assert check_conflict(a, [b]).has_conflict == check_conflict(b, [a]).has_conflict


class TestFormatConflictMessage:
    """Test cases for format_conflict_message."""

    def test_no_conflicts(self):
        assert format_conflict_message([]) == ''

    def test_single_conflict(self):
        event = make_event('a', at(9), at(10), title='周会')
        assert format_conflict_message([event]) == '与「周会」时间冲突'

    def test_multiple_conflicts(self):
        events = [make_event(str(i), at(9), at(10)) for i in range(3)]
        assert format_conflict_message(events) == '与 3 个日程时间冲突'


class TestSearchEvents:
    """Test cases for search_events."""

    @pytest.fixture
    def events(self):
        return [
            make_event('1', at(9), at(10), title='Project Review'),
            make_event('2', at(11), at(12), title='午饭', location='星巴克'),
            make_event('3', at(14), at(15), title='讨论', attendees=['老王', 'Alice']),
        ]

    def test_search_title_case_insensitive(self, events):
        assert [e.id for e in search_events(events, 'review')] == ['1']

    def test_search_location(self, events):
        assert [e.id for e in search_events(events, '星巴克')] == ['2']

    def test_search_attendee(self, events):
        assert [e.id for e in search_events(events, 'alice')] == ['3']

    def test_blank_query(self, events):
        assert search_events(events, '   ') == []
