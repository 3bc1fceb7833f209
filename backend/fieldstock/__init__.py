# backend/fieldstock/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.allocations import allocations_bp
    from .routes.devices import devices_bp
    from .routes.sales import sales_bp
    from .routes.commissions import commissions_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(allocations_bp)
    app.register_blueprint(devices_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(commissions_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
