import os

import flask

from .model.base import db
from .scim import scim_bp
from .scim.schema import init_registry
from .scim.store import SQLAlchemyResourceStore


def create_app(config=None):
    """
    Build the SCIM service application.

    Args:
        config: Optional mapping of Flask config overrides. SCIM_STORE replaces
            the SQLAlchemy store; SCIM_ENDPOINT_BASE overrides the base of
            resource locations

    Returns:
        Configured Flask app with tables created and the schema registry
        published
    """
    app = flask.Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get(
        "SQLALCHEMY_DATABASE_URI", "sqlite:///:memory:"
    )
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    if config:
        app.config.update(config)

    init_registry()
    app.config.setdefault("SCIM_STORE", SQLAlchemyResourceStore())

    db.init_app(app)
    with app.app_context():
        db.create_all()

    app.register_blueprint(scim_bp)
    return app
