import logging
import os
from zoneinfo import ZoneInfo
from flask import Flask, request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from apscheduler.schedulers.background import BackgroundScheduler
from pytz import timezone as _pytz_tz
from werkzeug.exceptions import HTTPException

# Global extensions
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
scheduler = BackgroundScheduler()


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in ("1", "true", "yes", "on")


def create_app(config=None):
    app = Flask(__name__)

    # --- Base config ---
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "devkey-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///labdash.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # --- TZ / JSON ---
    app.config["TZ_NAME"] = os.environ.get("TZ_NAME", "Asia/Dubai")
    app.json.ensure_ascii = False
    app.json.sort_keys = False

    # --- Uploads ---
    base_upload = os.path.join(app.root_path, "uploads")
    app.config["UPLOAD_FOLDER"] = os.environ.get("UPLOAD_FOLDER", base_upload)
    app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MAX_CONTENT_LENGTH", 25 * 1024 * 1024))  # 25MB

    # --- Seed admin / scheduler / logging ---
    app.config["ADMIN_EMAIL"] = os.environ.get("ADMIN_EMAIL", "admin@lab.local")
    app.config["ADMIN_PASSWORD"] = os.environ.get("ADMIN_PASSWORD", "admin")
    app.config["CHECK_INTERVAL_MINUTES"] = int(os.environ.get("CHECK_INTERVAL_MINUTES", "60"))
    app.config["SCHEDULER_ENABLED"] = _env_flag("SCHEDULER_ENABLED", "true")
    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO")

    if config:
        app.config.update(config)
    app.config["APP_TZ"] = ZoneInfo(app.config["TZ_NAME"])
    app.logger.setLevel(app.config["LOG_LEVEL"])
    logging.getLogger("labdash").setLevel(app.config["LOG_LEVEL"])

    # --- Extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    from .models import User  # noqa

    from .routes import bp as main_bp
    from .auth import bp as auth_bp
    from .equipment import bp as equipment_bp
    from .maintenance import bp as maintenance_bp
    from .consumables import bp as consumables_bp
    from .reservations import bp as reservations_bp
    from .procurement import bp as procurement_bp
    from .documents import bp as documents_bp
    from .alerts import bp as alerts_bp
    from .exports import bp as exports_bp
    from .utils import InvalidPayload, api_error

    # --- Blueprints ---
    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(equipment_bp, url_prefix="/api/equipment")
    app.register_blueprint(maintenance_bp, url_prefix="/api/maintenance")
    app.register_blueprint(consumables_bp, url_prefix="/api/consumables")
    app.register_blueprint(reservations_bp, url_prefix="/api/reservations")
    app.register_blueprint(procurement_bp, url_prefix="/api/procurement")
    app.register_blueprint(documents_bp, url_prefix="/api/documents")
    app.register_blueprint(alerts_bp, url_prefix="/api/alerts")
    app.register_blueprint(exports_bp, url_prefix="/export")

    # --- Errors as JSON ---
    @login_manager.unauthorized_handler
    def _unauthorized():
        return api_error(401, "UNAUTHORIZED", "Login required.")

    @app.errorhandler(InvalidPayload)
    def _invalid_payload(e):
        return api_error(400, "VALIDATION_ERROR", e.message, field=e.field)

    @app.errorhandler(HTTPException)
    def _http_error(e):
        return api_error(e.code, e.name.upper().replace(" ", "_"), e.description)

    @app.errorhandler(Exception)
    def _unexpected(e):
        db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return api_error(500, "SERVER_ERROR", "Internal server error.")

    # --- Minimal DB: admin user ---
    with app.app_context():
        db.create_all()
        if not User.query.filter_by(email=app.config["ADMIN_EMAIL"]).first():
            User.create_user(app.config["ADMIN_EMAIL"], app.config["ADMIN_PASSWORD"], name="Administrator", role="ADMIN")
            app.logger.info("Seeded admin user %s", app.config["ADMIN_EMAIL"])

    # --- Scheduler with local TZ ---
    from .alerts import run_alert_sweep
    from .time_helpers import now_local

    def check_alerts_job():
        with app.app_context():
            app.logger.info("[scheduler] run check_alerts_job")
            run_alert_sweep(now_local())

    should_start = (not app.debug) or (os.environ.get("WERKZEUG_RUN_MAIN") in ("true", "True", "1"))
    if app.config["SCHEDULER_ENABLED"] and should_start and not scheduler.running:
        scheduler.configure(timezone=_pytz_tz(app.config["TZ_NAME"]))
        interval_min = app.config["CHECK_INTERVAL_MINUTES"]
        scheduler.add_job(
            check_alerts_job, "interval",
            minutes=interval_min, id="check_alerts", replace_existing=True
        )
        scheduler.start()
        app.logger.info("[scheduler] started (debug=%s, interval=%s min)", app.debug, interval_min)

    # exposed so admins and tests can trigger a sweep
    app.check_alerts_job = check_alerts_job

    return app
