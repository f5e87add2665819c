"""ISO date parsing for command payloads, which carry dates as strings."""

from datetime import date

from protean.exceptions import ValidationError


def parse_iso_date(value, field):
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError({field: [f"Invalid date: {value}"]}) from None
