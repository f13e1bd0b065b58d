from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import os
from rlv_store.logger import get_logger

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["2000 per day", "300 per hour"],
    storage_uri="memory://"  # Use Redis in production for distributed systems
)


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes', 'on')


def create_app(config_overrides=None):
    """
    Build the Flask application.

    Args:
        config_overrides (dict, optional): Values applied on top of the
            environment-derived configuration (used by tests and scripts)

    Returns:
        Flask: The configured application
    """
    from pathlib import Path

    base_dir = Path(__file__).parent.parent

    app = Flask(__name__)

    logger = get_logger("rlv_store")
    logger.info("Initializing Flask application")

    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY')

    # Prefer an explicit DATABASE_URL; otherwise keep SQLite inside instance/
    db_env = os.environ.get('DATABASE_URL')
    if db_env:
        app.config['SQLALCHEMY_DATABASE_URI'] = db_env
    else:
        instance_dir = base_dir / 'instance'
        instance_dir.mkdir(parents=True, exist_ok=True)
        default_db_path = instance_dir / 'rlv_store.db'
        app.config['SQLALCHEMY_DATABASE_URI'] = f"sqlite:///{str(default_db_path.resolve())}"

    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Order and delivery lifecycle
    app.config['ORDER_AUTO_APPROVE_SECONDS'] = int(os.environ.get('ORDER_AUTO_APPROVE_SECONDS', '60'))
    app.config['DISPATCH_WAIT_SECONDS'] = int(os.environ.get('DISPATCH_WAIT_SECONDS', '60'))
    app.config['INVENTORY_ITEM_CAP'] = int(os.environ.get('INVENTORY_ITEM_CAP', '10'))
    app.config['CART_MAX_PER_ITEM'] = int(os.environ.get('CART_MAX_PER_ITEM', '3'))
    app.config['SCHEDULER_INTERVAL_SECONDS'] = int(os.environ.get('SCHEDULER_INTERVAL_SECONDS', '30'))
    app.config['SCHEDULER_TOKEN'] = os.environ.get('SCHEDULER_TOKEN')

    # HTTPS/TLS Configuration
    app.config['ENABLE_HTTPS'] = _env_flag('ENABLE_HTTPS', 'True')
    app.config['FORCE_HTTPS_REDIRECT'] = _env_flag('FORCE_HTTPS_REDIRECT', 'True')

    # Session cookie security configuration
    app.config['SESSION_COOKIE_SECURE'] = _env_flag('SESSION_COOKIE_SECURE', 'True')
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
    app.config['PERMANENT_SESSION_LIFETIME'] = int(os.environ.get('PERMANENT_SESSION_LIFETIME', '3600'))

    app.config['RATELIMIT_ENABLED'] = _env_flag('RATELIMIT_ENABLED', 'True')

    if config_overrides:
        app.config.update(config_overrides)

    # SECURITY: Require SECRET_KEY - no fallback
    if not app.config['SECRET_KEY']:
        logger.critical("SECRET_KEY not set in environment! Application cannot start.")
        raise RuntimeError("SECRET_KEY environment variable is required")

    if app.config['ENABLE_HTTPS']:
        logger.info("HTTPS enforcement enabled")
    else:
        logger.warning("HTTPS enforcement DISABLED - Acceptable for development only!")

    if not app.config['SCHEDULER_TOKEN']:
        logger.warning("SCHEDULER_TOKEN not set - the HTTP scheduler trigger is disabled")

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    logger.debug("Extensions initialized")

    # Import models to ensure they're registered with SQLAlchemy
    from rlv_store.data.core.user_info.user import User
    from rlv_store.data.stores.store import Store, StoreItem
    from rlv_store.data.ordering.order import Order
    from rlv_store.data.ordering.store_sale import StoreSale
    from rlv_store.data.dispatching.dispatch_record import DispatchRecord
    from rlv_store.data.inventory.inventory_line import InventoryLine
    from rlv_store.data.inventory.inventory_credit import InventoryCredit
    from rlv_store.data.core.event_info.order_event import OrderEvent

    logger.debug("Models imported and registered")

    # Register blueprints
    from rlv_store.auth import auth
    from rlv_store.presentation.routes import init_app as init_routes

    app.register_blueprint(auth, url_prefix='/auth')
    init_routes(app)

    @app.before_request
    def enforce_https():
        """Redirect HTTP requests to HTTPS if HTTPS enforcement is enabled"""
        if app.config.get('ENABLE_HTTPS') and app.config.get('FORCE_HTTPS_REDIRECT'):
            from flask import request, redirect

            if not request.is_secure and not request.headers.get('X-Forwarded-Proto') == 'https':
                url = request.url.replace('http://', 'https://', 1)
                return redirect(url, code=301)

    @app.after_request
    def set_security_headers(response):
        """Add security headers to all responses"""
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        if app.config.get('ENABLE_HTTPS'):
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    logger.info("Flask application initialization complete")

    return app
