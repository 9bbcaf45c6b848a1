## utils.py: helpers shared by the API blueprints

from collections.abc import Mapping
from datetime import datetime, date

from flask import jsonify, request
from flask_login import current_user

from . import db
from .time_helpers import parse_date, parse_datetime, to_naive_utc


class InvalidPayload(ValueError):
    """Request body failed validation; answered with a 400."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field


def field(item, name, default=None):
    """Read ``name`` from a model instance or a dict."""
    if isinstance(item, Mapping):
        value = item.get(name, default)
    else:
        value = getattr(item, name, default)
    return default if value is None else value


def api_error(status_code, code, message, **details):
    body = {"error": {"code": code, "message": message}}
    details = {k: v for k, v in details.items() if v is not None}
    if details:
        body["error"]["details"] = details
    return jsonify(body), status_code


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidPayload("Expected a JSON object body.")
    return data


def require_admin():
    return current_user.is_authenticated and getattr(current_user, "role", "") == "ADMIN"


def log(action, entity, entity_id, details=""):
    from .models import ChangeLog
    username = getattr(current_user, "email", None) or "system"
    db.session.add(ChangeLog(username=username, action=action, entity=entity, entity_id=entity_id, details=details))
    db.session.commit()


## serialization

def _jsonable(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def to_dict(obj, exclude=()):
    """Column values of a model row, dates as ISO-8601 strings."""
    return {c.name: _jsonable(getattr(obj, c.name))
            for c in obj.__table__.columns if c.name not in exclude}


## payload parsing

def _coerce(column, raw):
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if raw == "":
            return None
    type_name = type(column.type).__name__
    try:
        if type_name == "Date":
            return parse_date(raw)
        if type_name == "DateTime":
            return to_naive_utc(parse_datetime(raw))
        if type_name == "Integer":
            return int(raw)
        if type_name == "Float":
            return float(raw)
        if type_name == "Boolean":
            if isinstance(raw, str):
                return raw.lower() in ("1", "true", "yes", "on")
            return bool(raw)
    except (TypeError, ValueError):
        raise InvalidPayload(f"Invalid value for '{column.name}': {raw!r}", field=column.name)
    return raw


def apply_payload(obj, data, fields, required=(), choices=None):
    """Copy ``fields`` from the JSON body onto ``obj``.

    Only keys present in ``data`` are touched, so the same helper serves
    create and partial update. ``required`` fields must end up non-empty.
    """
    choices = choices or {}
    columns = obj.__table__.columns
    for name in fields:
        if name not in data:
            continue
        value = _coerce(columns[name], data.get(name))
        allowed = choices.get(name)
        if value is not None and allowed and value not in allowed:
            raise InvalidPayload(f"'{name}' must be one of: {', '.join(allowed)}", field=name)
        setattr(obj, name, value)
    for name in required:
        if getattr(obj, name, None) in (None, ""):
            raise InvalidPayload(f"Field '{name}' is required.", field=name)
    return obj
