"""Repairs for malformed iCalendar text that trips up strict parsing.

Some servers emit a trailing comma at the end of an unfolded date list, and
some emit RDATE/EXDATE properties with no value at all. Both are removed
here, line by line, before the text reaches the parser. Folded continuation
lines (which begin with whitespace) are never touched.
"""

import logging
import re

logger = logging.getLogger(__name__)

# Trailing commas before a line that does not start with whitespace, i.e. a
# comma that ends a property value instead of preceding a folded continuation.
TRAILING_COMMA_PATTERN = re.compile(r",+(\r?\n)(?=\S)")

# RDATE or EXDATE lines with nothing after the colon, including the line break.
EMPTY_PROPERTY_PATTERN = re.compile(r"^(?:RDATE|EXDATE):\r?(?:\n|$)", re.MULTILINE)


def sanitize_ics_text(ics_content: str) -> str:
    """Return iCalendar text with the known malformed patterns removed.

    The result is stable: sanitizing already-sanitized text returns it
    unchanged.

    Args:
        ics_content: Raw iCalendar text

    Returns:
        Text safe to hand to the parser

    Examples:
        >>> sanitize_ics_text("EXDATE:20240101T100000Z,\\nSUMMARY:x\\n")
        'EXDATE:20240101T100000Z\\nSUMMARY:x\\n'
        >>> sanitize_ics_text("RDATE:\\n")
        ''
    """
    # Commas first: removing one can leave an EXDATE line empty.
    sanitized, comma_count = TRAILING_COMMA_PATTERN.subn(r"\1", ics_content)
    sanitized, empty_count = EMPTY_PROPERTY_PATTERN.subn("", sanitized)

    if comma_count or empty_count:
        logger.debug(
            "Sanitized ICS text: removed %d trailing comma run(s), %d empty RDATE/EXDATE line(s)",
            comma_count,
            empty_count,
        )
    return sanitized
