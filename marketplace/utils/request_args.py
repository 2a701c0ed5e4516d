"""Helpers for reading JSON bodies and query arguments in blueprints."""
import uuid

from flask import request, current_app

from marketplace.exceptions import ValidationError
from marketplace.utils.time import parse_datetime


def json_body() -> dict:
    """Request JSON object, or an empty dict for missing/invalid bodies."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_uuid(value, field='id'):
    """Convert a path/body value to UUID; raises ValidationError when malformed."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}")


def optional_uuid(value, field='id'):
    if value is None or value == '':
        return None
    return parse_uuid(value, field)


def optional_datetime(value, field):
    try:
        return parse_datetime(value)
    except ValueError:
        raise ValidationError(f"Invalid date for {field}; use ISO 8601")


def currency_arg(data):
    """Currency from the body, falling back to the configured default."""
    return data.get('currency') or current_app.config.get('DEFAULT_CURRENCY')


def page_args(default_per_page=20):
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', default_per_page, type=int)
    return page, per_page


def bool_arg(name, default=False):
    value = request.args.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes')
