"""Deterministic parser turning a Chinese phrase into a calendar event."""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional, Union

from event_parser import lexicon
from event_parser.confidence import score_confidence
from event_parser.models import ParsedEventData, ParseMeta
from event_parser.time_resolver import (
    DEFAULT_DURATION_MINUTES,
    INVALID_DURATION_WARNING,
    resolve_date,
    resolve_time,
)
from event_parser.title_reducer import reduce_title

logger = logging.getLogger(__name__)


class EventParser:
    """Parser for casual natural-language event descriptions."""

    ID_PREFIX = 'evt_'

    def parse(
        self,
        text: str,
        reference_time: Optional[Union[datetime, str]] = None
    ) -> ParsedEventData:
        """
        Parse a phrase such as "明天下午3点开会" into a structured event.

        Unrecognized parts fall back to defaults and add a warning; the
        parser never raises for non-empty text.

        Args:
            text: Raw input phrase
            reference_time: Instant relative phrases are measured from,
                as a datetime or ISO 8601 string (default: now)

        Returns:
            ParsedEventData for the phrase
        """
        reference = self.normalize_reference(reference_time)

        target_date, date_warning = resolve_date(text, reference)
        resolution = resolve_time(text)

        warnings = []
        if date_warning:
            warnings.append(date_warning)
        warnings.extend(resolution.warnings)

        location = lexicon.extract_location(text)
        attendees = lexicon.extract_attendees(text)

        start = datetime.combine(target_date, datetime.min.time()) + timedelta(
            hours=resolution.hour,
            minutes=resolution.minute
        )
        try:
            end = start + timedelta(minutes=resolution.duration_minutes)
        except OverflowError:
            warnings.append(INVALID_DURATION_WARNING)
            end = start + timedelta(minutes=DEFAULT_DURATION_MINUTES)

        confidence = score_confidence(warnings, resolution.has_explicit_time)

        parsed = ParsedEventData(
            id=self.generate_event_id(),
            title=reduce_title(text, location=location, attendees=attendees),
            start=start,
            end=end,
            is_all_day=resolution.is_all_day,
            type=lexicon.classify_type(text),
            location=location,
            attendees=attendees,
            recurrence=lexicon.match_recurrence(text),
            meta=ParseMeta(
                confidence=confidence,
                raw_input=text,
                parsed_at=datetime.now(),
                warnings=warnings or None
            )
        )

        logger.debug(
            f"Parsed '{text}' as '{parsed.title}' at {start.isoformat()}",
            extra={'confidence': confidence, 'warnings': warnings}
        )
        return parsed

    def normalize_reference(
        self,
        reference_time: Optional[Union[datetime, str]]
    ) -> datetime:
        """
        Normalize a reference instant to a naive wall-clock datetime.

        Args:
            reference_time: datetime, ISO 8601 string or None

        Returns:
            Naive datetime; timezone-aware input keeps its wall-clock value
        """
        if reference_time is None:
            return datetime.now()

        if isinstance(reference_time, str):
            value = reference_time.strip()
            if value.endswith('Z'):
                value = value[:-1] + '+00:00'
            reference_time = datetime.fromisoformat(value)

        return reference_time.replace(tzinfo=None)

    def generate_event_id(self) -> str:
        """Generate a short random event id such as ``evt_1a2b3c4d``."""
        return f"{self.ID_PREFIX}{uuid.uuid4().hex[:8]}"
