"""
Logging Sanitizer Utility

Redacts credentials and tokens from request payloads and headers before
they are logged.
"""

from typing import Dict, Any, Mapping
from werkzeug.datastructures import ImmutableMultiDict


# Keys whose values never reach the log files
SENSITIVE_FIELDS = {
    'password',
    'password_confirm',
    'confirm_password',
    'current_password',
    'new_password',
    'pwd',
    'secret',
    'token',
    'api_key',
    'auth_token',
    'access_token',
    'session_id',
    'csrf_token',
    'scheduler_token',
    'x-scheduler-token',
    'authorization',
    'cookie',
}


def sanitize_dict(data: Dict[str, Any], redact_text: str = '[REDACTED]') -> Dict[str, Any]:
    """
    Copy of `data` with every sensitive key (case-insensitive) replaced by
    redact_text. Nested dicts, and dicts inside lists, are handled too.

        >>> sanitize_dict({'username': 'ana', 'password': 'secret123'})
        {'username': 'ana', 'password': '[REDACTED]'}
    """
    if not data:
        return data

    sanitized = {}
    for key, value in data.items():
        if str(key).lower() in SENSITIVE_FIELDS:
            sanitized[key] = redact_text
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, redact_text)
        elif isinstance(value, list):
            sanitized[key] = [
                sanitize_dict(v, redact_text) if isinstance(v, dict) else v for v in value
            ]
        else:
            sanitized[key] = value

    return sanitized


def sanitize_form_data(form_data: ImmutableMultiDict, redact_text: str = '[REDACTED]') -> Dict[str, Any]:
    """Sanitize Flask request.form data for safe logging."""
    return sanitize_dict(dict(form_data), redact_text)


def sanitize_headers(headers: Mapping[str, str], redact_text: str = '[REDACTED]') -> Dict[str, Any]:
    """Sanitize request headers (Authorization, Cookie, X-Scheduler-Token)."""
    return sanitize_dict(dict(headers), redact_text)
