from flask import current_app, request

from houseshare.extensions import db
from houseshare.services.errors import ValidationError
from houseshare.store import Store


def get_store():
    """Persistence port bound to the request's session."""
    return Store(db.session)


def get_gateway():
    return current_app.extensions['payment_gateway']


def get_payload():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def require_int(data, field):
    value = data.get(field)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} is required and must be an integer")
