"""
Routes package for the store/order/delivery JSON API
"""

from flask import jsonify
from rlv_store import login_manager
from rlv_store.buisness.core.errors import DeliveryDomainError
from rlv_store.logger import get_logger
from rlv_store.presentation.routes.helpers import error_payload

logger = get_logger("rlv_store.routes")


def init_app(app):
    """Register every blueprint and the JSON error handlers with the Flask app"""
    logger.debug("Initializing route blueprints")

    from .store import bp as store_bp
    from .manager import bp as manager_bp
    from .courier import bp as courier_bp
    from .internal import bp as internal_bp

    app.register_blueprint(store_bp)
    app.register_blueprint(manager_bp, url_prefix='/manager')
    app.register_blueprint(courier_bp, url_prefix='/courier')
    app.register_blueprint(internal_bp, url_prefix='/internal')

    @app.errorhandler(DeliveryDomainError)
    def handle_domain_error(error):
        if error.http_status >= 500:
            logger.error(f"{type(error).__name__}: {error}")
        else:
            logger.info(f"{type(error).__name__}: {error}")
        return jsonify(error_payload(error)), error.http_status

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({'success': False, 'error': 'not_found', 'message': 'Resource not found'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return jsonify({'success': False, 'error': 'method_not_allowed', 'message': str(error)}), 405

    @app.errorhandler(429)
    def handle_rate_limited(error):
        return jsonify({'success': False, 'error': 'rate_limited', 'message': str(error.description)}), 429

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'unauthorized', 'message': 'Login required'}), 401

    logger.info("All blueprints registered")
