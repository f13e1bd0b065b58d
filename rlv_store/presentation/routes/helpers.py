"""
Shared helpers for the JSON blueprints
"""

from functools import wraps

from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from rlv_store.buisness.core.errors import DeliveryDomainError, InvalidTransition, PermissionDenied, ValidationError
from rlv_store.buisness.lifecycle import OrderLifecycle
from rlv_store.logger import get_logger

logger = get_logger("rlv_store.routes")


def get_lifecycle() -> OrderLifecycle:
    return OrderLifecycle.from_config(current_app.config, clock=current_app.config.get('LIFECYCLE_CLOCK'))


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def error_payload(error: DeliveryDomainError) -> dict:
    payload = {
        'success': False,
        'error': error.error_kind,
        'message': str(error),
    }
    if isinstance(error, InvalidTransition):
        payload['current_status'] = error.current
    return payload


def role_required(*roles):
    """Require a logged-in user holding one of `roles` (admins always pass)."""
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if not current_user.has_role(*roles):
                logger.warning(f"User {current_user.username} ({current_user.role}) denied {request.path}")
                raise PermissionDenied(f"One of the roles {', '.join(roles)} is required")
            return view(*args, **kwargs)
        return wrapped
    return decorator


def managed_store_id() -> str:
    """Store the current manager acts on; admins pick one with ?store_id=."""
    if current_user.is_admin:
        store_id = request.args.get('store_id') or current_user.store_id
    else:
        store_id = current_user.store_id
    if not store_id:
        raise ValidationError("No store selected for this manager")
    return store_id


def parse_decision(value, allowed) -> str:
    decision = (value or '').strip().lower()
    if decision not in allowed:
        raise ValidationError(f"Decision must be one of: {', '.join(sorted(allowed))}")
    return decision


def ok(payload=None, status=200):
    body = {'success': True}
    body.update(payload or {})
    return jsonify(body), status
