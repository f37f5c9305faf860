"""iCalendar side of ics2gcal: sanitizing, parsing, recurrence extraction and translation."""
