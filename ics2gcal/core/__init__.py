"""Shared infrastructure for ics2gcal: HTTP clients, join primitives and timezone helpers."""
