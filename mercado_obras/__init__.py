import os

import click
from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from mercado_obras.config import Config
from mercado_obras.db import close_db, get_db, get_read_db, init_db
from mercado_obras.db_migrations import register_db_cli
from mercado_obras.observability import (
    configure_json_logging,
    ensure_request_id,
    mark_request_start,
    metrics_snapshot,
    observe_response,
    prometheus_metrics_text,
)
from mercado_obras.security import apply_security_headers, enforce_rate_limit


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_json_logging(app)

    _ensure_database_dir(app)
    _register_error_handlers(app)
    _register_security(app)
    _register_auth(app)
    _register_services(app)
    _register_blueprints(app)
    _register_health(app)
    register_db_cli(app)
    _register_catalog_cli(app)
    _maybe_init_schema(app)

    app.teardown_appcontext(close_db)
    return app


def _ensure_database_dir(app: Flask) -> None:
    database_dir = app.config.get("DATABASE_DIR")
    if database_dir:
        os.makedirs(database_dir, exist_ok=True)


def _maybe_init_schema(app: Flask) -> None:
    auto_init = bool(app.config.get("DB_AUTO_INIT", False))
    if app.testing:
        auto_init = True
    if not auto_init:
        return

    flask_env = (os.environ.get("FLASK_ENV", "development") or "development").strip().lower()
    if not app.testing and flask_env != "development":
        app.logger.warning("DB_AUTO_INIT ignorado fora de development.")
        return

    with app.app_context():
        init_db()


def _register_services(app: Flask) -> None:
    from mercado_obras.application.catalog_service import CatalogService
    from mercado_obras.application.fornecedor_service import FornecedorService
    from mercado_obras.application.obra_service import ObraService
    from mercado_obras.application.quotation_service import QuotationService

    catalog = CatalogService(ttl_seconds=int(app.config.get("CATALOG_CACHE_TTL_SECONDS", 60)))
    obras = ObraService(catalog, app.config.get("APP_TIMEZONE"))
    app.extensions["mercado_obras"] = {
        "catalog": catalog,
        "obras": obras,
        "cotacoes": QuotationService(catalog, obras),
        "fornecedores": FornecedorService(),
    }


def _register_blueprints(app: Flask) -> None:
    from mercado_obras.routes.catalog_routes import catalog_bp
    from mercado_obras.routes.home_routes import home_bp
    from mercado_obras.routes.obra_routes import obra_bp

    app.register_blueprint(home_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(obra_bp)


def _register_auth(app: Flask) -> None:
    from mercado_obras.auth import register_auth

    register_auth(app)


def _register_error_handlers(app: Flask) -> None:
    from mercado_obras.errors import AppError, SystemError

    @app.before_request
    def _ensure_request_id() -> None:
        ensure_request_id()
        mark_request_start()

    @app.after_request
    def _append_request_id(response):
        response.headers["X-Request-Id"] = ensure_request_id()
        response = observe_response(response)
        return apply_security_headers(response)

    def _log_error(error: AppError, request_id: str) -> None:
        log_method = app.logger.error if error.critical else app.logger.warning
        log_method(
            "application_error",
            extra={
                "request_id": request_id,
                "error_code": error.code,
                "http_status": error.http_status,
                "message_key": error.message_key,
                "details": error.details,
                "request_path": request.path,
                "http_method": request.method,
            },
            exc_info=error.critical,
        )

    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        request_id = ensure_request_id()
        _log_error(exc, request_id)
        return jsonify(exc.to_response_payload(request_id)), exc.http_status

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc

        request_id = ensure_request_id()
        mapped = SystemError(
            code="unexpected_error",
            message_key="unexpected_error",
            http_status=500,
            critical=True,
            details=str(exc),
        )
        app.logger.exception(
            "unexpected_exception",
            extra={
                "request_id": request_id,
                "error_code": mapped.code,
                "request_path": request.path,
                "http_method": request.method,
            },
        )
        return jsonify(mapped.to_response_payload(request_id)), mapped.http_status


def _register_security(app: Flask) -> None:
    @app.before_request
    def _rate_limit_guard():
        return enforce_rate_limit()


def _register_health(app: Flask) -> None:
    @app.route("/health")
    def health():
        db_path = app.config.get("DB_PATH") or "unknown"
        backend = "postgres" if str(db_path).startswith("postgres") else "sqlite"
        payload = {
            "status": "ok",
            "db": backend,
            "env": app.config.get("ENV", "unknown"),
            "metrics": {
                "http": metrics_snapshot(),
            },
            "checks": {"db": "ok", "catalog": "ok"},
        }
        try:
            graph = app.extensions["mercado_obras"]["catalog"].snapshot(get_read_db())
            payload["catalog"] = {
                "fases": len(graph.fases),
                "servicos": len(graph.servicos),
                "grupos": len(graph.grupos),
                "materiais": len(graph.materiais),
                "empty": graph.is_empty(),
            }
            if graph.is_empty():
                payload["checks"]["catalog"] = "empty"
        except Exception as exc:
            app.logger.warning("health_catalog_check_failed", extra={"details": str(exc)})
            payload["status"] = "degraded"
            payload["checks"] = {"db": "error", "catalog": "unavailable"}
        return payload, 200

    @app.route("/metrics")
    def metrics():
        return Response(prometheus_metrics_text(), mimetype="text/plain; version=0.0.4")


def _register_catalog_cli(app: Flask) -> None:
    @app.cli.group("catalogo")
    def catalogo_group() -> None:
        """Catalogo de fases, servicos, grupos e materiais."""

    @catalogo_group.command("seed")
    def seed_command() -> None:
        from mercado_obras.seed import seed_demo_catalog

        counts = seed_demo_catalog(get_db())
        app.extensions["mercado_obras"]["catalog"].invalidate()
        click.echo(
            "Catalogo demo carregado: "
            + ", ".join(f"{key}={value}" for key, value in counts.items())
        )
