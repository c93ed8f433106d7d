"""Helpers for reading submitted form / JSON fields."""
import re

from errors import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

TRUE_VALUES = {"true", "1", "on", "yes"}


def text(form, key):
    """Stripped string value, or None when missing or blank."""
    value = form.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_bool(form, key, default=False):
    value = form.get(key)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def parse_int(value, default=None, error_key="competition.invalid_number", field=None):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(error_key, field=field)
    try:
        return int(value)
    except (ValueError, TypeError):
        raise ValidationError(error_key, field=field)


def int_field(form, key, default=None):
    return parse_int(form.get(key), default, field=key)


def optional_id(form, key):
    """Foreign-key field where "", "none" and null all mean "no reference"."""
    value = form.get(key)
    if value in (None, "", "none", "null"):
        return None
    return parse_int(value, field=key)


def is_valid_email(value):
    return bool(EMAIL_RE.match(value))
