"""Derive an event title by removing everything the parser consumed."""
from typing import List, Optional

from event_parser import lexicon


def reduce_title(
    text: str,
    location: Optional[str] = None,
    attendees: Optional[List[str]] = None
) -> str:
    """
    Strip date, time, duration and clause tokens from the raw phrase.

    Args:
        text: Raw input phrase
        location: Location extracted from the phrase, if any
        attendees: Attendees extracted from the phrase, if any

    Returns:
        Cleaned title, or the default title when nothing is left
    """
    # Clauses go first, their captures may contain time tokens.
    # They are removed without their trailing boundary word.
    title = text
    if location:
        title = title.replace(f'在{location}', '', 1)
    if attendees:
        title = title.replace(f'和{attendees[0]}', '', 1)

    for pattern in lexicon.TITLE_STRIP_PATTERNS:
        title = pattern.sub('', title)

    title = lexicon.RECURRENCE_STRIP_PATTERN.sub('', title)
    title = lexicon.LEADING_CONNECTOR_PATTERN.sub('', title.strip())
    title = lexicon.WHITESPACE_PATTERN.sub('', title)

    return title or lexicon.DEFAULT_TITLE
