from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import importlib
import logging

from personnel.config.settings import SETTINGS, load_settings
from personnel.errors import DomainError

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()

MODEL_MODULES = (
    'authz', 'audit', 'employee', 'unit', 'application', 'academy', 'treasury', 'sanction', 'bonus', 'outbox',
)

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def load_models():
    """Import every model module so all tables are registered on the shared metadata."""
    for name in MODEL_MODULES:
        importlib.import_module(f'personnel.models.{name}')
    from personnel.models.authz import Base
    return Base


def configure_logging(app: Flask):
    level = getattr(logging, app.config['LOG_LEVEL'], logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger('personnel').setLevel(level)
    app.logger.setLevel(level)


def create_app(config: Optional[Dict[str, Any]] = None, integrations=None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    # environment / .env first, then caller overrides (tests)
    app.config.update(load_settings(config))
    if config:
        app.config.update({k: v for k, v in config.items() if k not in SETTINGS})
    configure_logging(app)

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
    load_models()

    jwt.init_app(app)

    # External collaborators (chat platform role store, identity sync, blob store)
    from personnel.services.integrations import build_default_integrations
    app.extensions['personnel'] = integrations or build_default_integrations(app.config)

    from .routes.iam import iam_bp
    from .routes.employees import emp_bp
    from .routes.hr import hr_bp
    from .routes.academy import academy_bp
    from .routes.uprank import uprank_bp
    from .routes.treasury import treasury_bp
    from .routes.sanctions import sanctions_bp
    from .routes.bonus import bonus_bp
    app.register_blueprint(iam_bp, url_prefix='/iam')
    app.register_blueprint(emp_bp, url_prefix='/employees')
    app.register_blueprint(hr_bp, url_prefix='/hr')
    app.register_blueprint(academy_bp, url_prefix='/academy')
    app.register_blueprint(uprank_bp, url_prefix='/uprank')
    app.register_blueprint(treasury_bp, url_prefix='/treasury')
    app.register_blueprint(sanctions_bp, url_prefix='/sanctions')
    app.register_blueprint(bonus_bp, url_prefix='/bonus')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, DomainError):
            # precondition failures must not leave partial writes in the request session
            get_db().rollback()
            app.logger.info('%s: %s', e.kind, e.detail)
            return {'error': e.to_dict()}, e.status_code
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                    'kind': type(e).__name__,
                }
            }
            return payload, e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        get_db().rollback()
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error',
                'kind': 'InternalError',
            }
        }, 500

    # OpenAPI spec route (minimal)
    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    @app.route('/docs')
    def docs_index():
        # Lightweight HTML referencing Redoc CDN (no local install) for quick browsing
        return (
            "<!DOCTYPE html><html><head><title>Personnel API Docs</title>"
            "</head><body><redoc spec-url='/openapi.json'></redoc>"
            "<script src='https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.js'></script>"
            "</body></html>"
        )

    return app


def get_db():
    return SessionLocal()
