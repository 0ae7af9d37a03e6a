from __future__ import annotations

import os
from typing import Optional

from flask import Flask
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import get_config
from .db import init_db
from .observability import init_observability
from .api.pastes import api_bp
from .repositories.base import PasteStore
from .services.registry import init_services
from .web.views import web_bp


def create_app(env_name: str | None = None, *, store: Optional[PasteStore] = None) -> Flask:
    """
    Application factory for the Flask backend.

    The configuration is selected based on the provided ``env_name`` or,
    if not given, the ``APP_ENV`` environment variable (falling back to
    ``development``).  ``store`` replaces the default SQLAlchemy-backed
    paste store.
    """
    if env_name is None:
        env_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app_config = get_config(env_name)
    app.config.from_object(app_config)

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # type: ignore[method-assign]

    CORS(app, resources={r"/api/*": {"origins": "*"}})

    # Initialize infrastructure layers
    init_db(app)
    init_observability(app)
    init_services(app, store=store)

    # Register blueprints
    app.register_blueprint(api_bp)
    app.register_blueprint(web_bp)

    return app
