from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['AUDIT_ASYNC'] = _env_flag('AUDIT_ASYNC')
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .routes.users import users_bp
    from .routes.companies import companies_bp
    from .routes.catalog import catalog_bp
    from .routes.orders import orders_bp
    from .routes.cart import cart_bp
    from .routes.notifications import notifications_bp
    from .routes.settings import settings_bp
    from .routes.inventory import inventory_bp
    from .routes.payments import payments_bp
    from .routes.bulk_orders import bulk_orders_bp
    from .routes.audit import audit_bp
    from .routes.pages import pages_bp
    app.register_blueprint(users_bp, url_prefix='/users')
    app.register_blueprint(companies_bp, url_prefix='/companies')
    app.register_blueprint(catalog_bp, url_prefix='/catalog')
    app.register_blueprint(orders_bp, url_prefix='/orders')
    app.register_blueprint(cart_bp, url_prefix='/cart')
    app.register_blueprint(notifications_bp, url_prefix='/notifications')
    app.register_blueprint(settings_bp, url_prefix='/settings')
    app.register_blueprint(inventory_bp, url_prefix='/inventory')
    app.register_blueprint(payments_bp, url_prefix='/payments')
    app.register_blueprint(bulk_orders_bp, url_prefix='/bulk-orders')
    app.register_blueprint(audit_bp, url_prefix='/audit')
    app.register_blueprint(pages_bp)

    @app.teardown_request
    def remove_session(exc):
        # discards uncommitted changes left behind by aborted handlers
        SessionLocal.remove()

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            return payload, e.code
        # Unhandled exception (includes InvalidRoleError from malformed claims)
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    return app


def get_db():
    return SessionLocal()


def new_session():
    """Return an independent session (not the request-scoped one)."""
    return SessionLocal.session_factory()
