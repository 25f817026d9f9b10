import logging
import os
from datetime import timedelta

from flask import Flask, g, jsonify, request, session
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from app.recon.config import load_config
from app.recon.db import init_db, teardown_db_session
from app.recon.routes import bp as routes_bp
from app.recon.auth import bp as auth_bp, load_current_user
from app.recon.admin import bp as admin_bp
from app.recon.modules.inspection_settings.admin import bp as inspection_settings_bp
from app.recon.modules.inspection_data.admin import bp as inspection_data_bp
from app.recon.modules.vehicles.admin import bp as vehicles_bp

logger = logging.getLogger(__name__)

# table -> columns the code reads; checked once at startup
EXPECTED_SCHEMA = {
    "dealerships": ("id", "name"),
    "users": ("dealership_id", "initials"),
    "audit_events": ("dealership_id",),
    "vehicles": ("inspection_data", "team_notes", "is_sold", "is_pending"),
    "inspection_checklists": ("checklist_data", "status", "completed_at"),
    "inspection_settings": ("dealership_id", "settings"),
}


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    # CSRF protection (minimal)
    from app.recon.security import MUTATING_METHODS, ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in MUTATING_METHODS:
            # Allow safe auth endpoints to pass through (login/logout)
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return jsonify({"error": "CSRF token missing or invalid."}), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    # Settings cache is optional; a bad directory only disables the mirror.
    if app.config.get("CACHE_ENABLED"):
        cache_dir = str(app.config.get("CACHE_DIR") or "")
        try:
            os.makedirs(cache_dir, exist_ok=True)
        except OSError as e:
            app.logger.error("CACHE CONFIG ERROR: cannot create %s (%s); settings cache disabled", cache_dir, e)
            app.config["CACHE_ENABLED"] = False

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(inspection_settings_bp, url_prefix="/admin")
    app.register_blueprint(vehicles_bp, url_prefix="/admin")
    app.register_blueprint(inspection_data_bp, url_prefix="/admin")

    def _load_user_wrapper():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    # Migration health (lean): detect drift between code expectations and DB schema.
    app.config.setdefault("_schema_health_ok", True)
    app.config.setdefault("_schema_health_missing", [])

    def _run_schema_health_check() -> None:
        missing: list[str] = []
        try:
            engine = app.extensions.get("sqlalchemy_engine")
            if engine is None:
                raise RuntimeError("sqlalchemy_engine not initialized")
            insp = sa_inspect(engine)
            for table, columns in EXPECTED_SCHEMA.items():
                if not insp.has_table(table):
                    missing.append(f"{table} (table)")
                    continue
                cols = {c["name"] for c in insp.get_columns(table)}
                missing.extend(f"{table}.{col}" for col in columns if col not in cols)
        except (SQLAlchemyError, RuntimeError) as e:
            app.logger.exception("Schema health check failed: %s", e)

        was_ok = app.config.get("_schema_health_ok")
        app.config["_schema_health_missing"] = missing
        app.config["_schema_health_ok"] = not missing
        if missing and was_ok:
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))

    _run_schema_health_check()

    @app.before_request
    def _schema_health_guardrail():  # type: ignore[no-redef]
        if app.config.get("_schema_health_ok"):
            return None
        # Re-check until the schema catches up (e.g. migrations ran after boot).
        _run_schema_health_check()
        if app.config.get("_schema_health_ok"):
            return None
        if request.path.startswith("/admin") and getattr(g, "current_user", None):
            return jsonify({"error": "Database schema out of date.", "missing": app.config.get("_schema_health_missing") or []}), 500
        return None

    @app.errorhandler(HTTPException)
    def _err_http(e):  # type: ignore[no-redef]
        if e.code == 403:
            missing = getattr(g, "missing_permission", None)
            if missing:
                app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
            return jsonify({"error": "Forbidden", "missing_permission": missing}), 403
        return jsonify({"error": e.name, "description": e.description}), e.code

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Internal Server Error"}), 500

    logger.info("create_app() complete; app ready to serve")

    return app
