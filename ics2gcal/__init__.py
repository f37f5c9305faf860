"""ics2gcal - import iCalendar (.ics) documents into Google Calendar.

Recurring events keep their RRULE/RDATE recurrence, and EXDATE exclusions are
applied by cancelling the matching instances after the series is created.
"""

__version__ = "0.1.0"
