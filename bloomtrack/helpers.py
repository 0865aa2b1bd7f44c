from decimal import Decimal, InvalidOperation

from flask import jsonify, request

from .db import convert_decimals
from .reconcile import parse_date


class ValidationError(ValueError):
    status = 400


def body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def ok(payload, status=200):
    return jsonify(convert_decimals(payload)), status


def error(message, status, **extra):
    out = {"error": message}
    out.update(extra)
    return jsonify(out), status


def _parse_bool(v):
    if v is None:
        return False
    return str(v).strip().lower() in ("1", "true", "yes", "y", "t")


def clean_str(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def require_str(data, key, label=None):
    value = clean_str(data.get(key))
    if not value:
        raise ValidationError(f"{label or key} is required")
    return value


def number(data, key, default="0", allow_negative=False):
    raw = data.get(key)
    if raw is None or raw == "":
        raw = default
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{key} must be a number")
    if not value.is_finite():
        raise ValidationError(f"{key} must be a number")
    if not allow_negative and value < 0:
        raise ValidationError(f"{key} cannot be negative")
    return value


def optional_number(data, key):
    if data.get(key) in (None, ""):
        return None
    return number(data, key)


def date_arg(value, label="date"):
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationError(f"Invalid {label}, expected YYYY-MM-DD")
