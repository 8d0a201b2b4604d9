# backend/exportops/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Collection store and snapshot sync
    from .services.app_services import STORE_EXTENSION, SYNC_EXTENSION
    from .services.store import SqlStore
    from .services.sync_service import SnapshotPublisher, TrackingSync, snapshot_source_from_config

    store = app.config.get("EXPORTOPS_STORE") or SqlStore()
    app.extensions[STORE_EXTENSION] = store
    if app.config["TRACKING_SYNC_ENABLED"]:
        sync = TrackingSync(
            store,
            SnapshotPublisher(snapshot_source_from_config(app.config)),
            app=app,
            async_mode=app.config["TRACKING_SYNC_ASYNC"],
        )
        app.extensions[SYNC_EXTENSION] = sync.start()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.inventory import inventory_bp
    from .routes.orders import orders_bp
    from .routes.assignments import assignments_bp
    from .routes.reports import reports_bp
    from .routes.tracking import tracking_bp, public_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(assignments_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(tracking_bp)
    app.register_blueprint(public_bp)

    allowed_origins = {
        origin.strip()
        for origin in (app.config.get("CORS_ALLOWED_ORIGINS") or "").split(",")
        if origin.strip()
    }

    @app.after_request
    def add_cors_headers(response):
        # The snapshot API sets its own permissive headers
        if request.blueprint == tracking_bp.name:
            return response
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    if app.config["SEED_SAMPLE_DATA"]:
        from .services.sample_data import seed_sample_data
        from .services.store import Repository

        with app.app_context():
            db.create_all()
            if seed_sample_data(Repository(store)):
                app.logger.info("Seeded sample lots and sales orders")

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
