"""
Test the logging sanitizer utility.
Verifies that passwords and scheduler tokens are redacted from logs.
"""

from werkzeug.datastructures import ImmutableMultiDict

from rlv_store.utils.logging_sanitizer import SENSITIVE_FIELDS, sanitize_dict, sanitize_form_data, sanitize_headers


def test_sanitize_dict():
    result = sanitize_dict({'username': 'ana', 'password': 'secret123', 'store_id': 'farmacia'})
    assert result['username'] == 'ana', "Username should not be redacted"
    assert result['password'] == '[REDACTED]', "Password should be redacted"
    assert result['store_id'] == 'farmacia', "Store id should not be redacted"

    result = sanitize_dict({'Password': 'a', 'PASSWORD': 'b'})
    assert result == {'Password': '[REDACTED]', 'PASSWORD': '[REDACTED]'}, "Redaction is case-insensitive"


def test_sanitize_nested_values():
    data = {
        'user': {'username': 'ana', 'password': 'secret123'},
        'lines': [{'item_id': 'dipirona', 'token': 'abc'}, 'plain'],
    }
    result = sanitize_dict(data)
    assert result['user'] == {'username': 'ana', 'password': '[REDACTED]'}
    assert result['lines'] == [{'item_id': 'dipirona', 'token': '[REDACTED]'}, 'plain']
    assert data['user']['password'] == 'secret123', "Input must not be modified"


def test_sanitize_form_data():
    form = ImmutableMultiDict([('username', 'ana'), ('password', 'secret123')])
    assert sanitize_form_data(form) == {'username': 'ana', 'password': '[REDACTED]'}


def test_sanitize_headers():
    headers = {'X-Scheduler-Token': 'abc', 'Authorization': 'Bearer x', 'Content-Type': 'application/json'}
    result = sanitize_headers(headers)
    assert result['X-Scheduler-Token'] == '[REDACTED]'
    assert result['Authorization'] == '[REDACTED]'
    assert result['Content-Type'] == 'application/json'


def test_sensitive_fields_and_empty_input():
    assert {'password', 'scheduler_token', 'csrf_token'} <= SENSITIVE_FIELDS
    assert sanitize_dict({}) == {}
    assert sanitize_dict(None) is None
