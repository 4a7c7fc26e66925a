from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import atexit
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _load_config(app: Flask, overrides: Optional[Dict[str, Any]]):
    app.config.update(
        JWT_SECRET_KEY=os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        DATABASE_URL=os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        # 'thread' delivers events off the request path; 'inline' runs handlers in the publisher
        EVENT_DISPATCH=os.getenv('EVENT_DISPATCH', 'thread'),
        EVENT_STREAM_QUEUE_SIZE=int(os.getenv('EVENT_STREAM_QUEUE_SIZE', '100')),
        EVENT_STREAM_HEARTBEAT=float(os.getenv('EVENT_STREAM_HEARTBEAT', '15')),
        CUSTOMER_ORDERING_DEFAULT=_env_flag('CUSTOMER_ORDERING_DEFAULT'),
        LOG_LEVEL=os.getenv('LOG_LEVEL', 'INFO'),
    )
    if overrides:
        app.config.update(overrides)


def _build_engine(db_url: str):
    if db_url.endswith(':memory:'):
        # one connection shared by every session, otherwise each sees an empty database
        return create_engine(db_url, future=True, connect_args={'check_same_thread': False}, poolclass=StaticPool)
    return create_engine(db_url, future=True)


def _error_body(status: int, title: str, detail: Any, kind: Optional[str] = None):
    error = {'status': status, 'title': title, 'detail': detail}
    if kind:
        error['kind'] = kind
    return {'error': error}


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)
    _load_config(app, config)

    app.logger.setLevel(app.config['LOG_LEVEL'])
    logging.getLogger('orderflow').setLevel(app.config['LOG_LEVEL'])

    db_engine = _build_engine(app.config['DATABASE_URL'])
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .events import EXTENSION_KEY
    from .events.bus import build_event_bus
    bus = build_event_bus(app.config['EVENT_DISPATCH'])
    app.extensions[EXTENSION_KEY] = bus
    atexit.register(bus.close)

    from .routes.orders import orders_bp
    from .routes.reports import rpt_bp
    from .routes.settings import settings_bp
    from .routes.auth import auth_bp
    app.register_blueprint(orders_bp)
    app.register_blueprint(rpt_bp, url_prefix='/reports')
    app.register_blueprint(settings_bp, url_prefix='/settings')
    app.register_blueprint(auth_bp, url_prefix='/auth')

    @app.route('/healthz')
    def health():
        return {'status': 'ok', 'subscribers': bus.subscriber_count()}

    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            return _error_body(e.code, e.name, e.description, getattr(e, 'kind', None)), e.code
        app.logger.exception('Unhandled exception')
        return _error_body(500, 'Internal Server Error', 'Unexpected error'), 500

    app.logger.info('orderflow ready (dispatch=%s)', app.config['EVENT_DISPATCH'])
    return app


def get_db():
    return SessionLocal()
