from flask import Blueprint, jsonify, request
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf
from rlv_store import limiter
from rlv_store.data.core.user_info.user import User
from rlv_store.services.cart.cart_session import CartSession
from rlv_store.logger import get_logger
from rlv_store.utils.logging_sanitizer import sanitize_dict

logger = get_logger("rlv_store.auth")
auth = Blueprint('auth', __name__)


def _credentials():
    data = request.get_json(silent=True) or request.form.to_dict()
    return data.get('username'), data.get('password'), data


@auth.route('/csrf-token', methods=['GET'])
def csrf_token():
    return jsonify({'csrf_token': generate_csrf()})


@auth.route('/login', methods=['POST'])
@limiter.limit("20 per minute")
def login():
    if current_user.is_authenticated:
        logger.debug(f"User {current_user.username} already authenticated")
        return jsonify({'success': True, 'user': current_user.to_dict(include_audit_fields=False)})

    username, password, data = _credentials()
    logger.debug(f"Login attempt: {sanitize_dict(data)}")

    if not username or not password:
        logger.warning(f"Login attempt with missing credentials for username: {username}")
        return jsonify({'success': False, 'error': 'validation_error',
                        'message': 'Please enter both username and password'}), 400

    user = User.query.filter_by(username=username).first()

    if user is None or not user.check_password(password):
        logger.warning(f"Failed login attempt for username: {username}")
        return jsonify({'success': False, 'error': 'invalid_credentials',
                        'message': 'Invalid username or password'}), 401

    if not user.is_active:
        logger.warning(f"Login attempt for disabled account: {username}")
        return jsonify({'success': False, 'error': 'account_disabled',
                        'message': 'Account is disabled'}), 403

    login_user(user)
    logger.info(f"Successful login for user: {username} ({user.role})")
    return jsonify({'success': True, 'user': user.to_dict(include_audit_fields=False)})


@auth.route('/logout', methods=['POST'])
@login_required
def logout():
    username = current_user.username
    CartSession.discard()
    logout_user()
    logger.info(f"User logged out: {username}")
    return jsonify({'success': True})
