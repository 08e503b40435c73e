"""Flask application for the FHIR Patient Service."""

import signal
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, Optional

from flask import Flask, Response, current_app, g, jsonify, redirect, request, url_for
from sqlalchemy import Engine
from werkzeug.exceptions import HTTPException

from fhir_patient_service.api.patient_endpoints import (
    ENDPOINT_ACTIONS,
    EXTENSION_KEY,
    current_actor,
    fhir_bp,
)
from fhir_patient_service.api.responses import fhir_response
from fhir_patient_service.config.schema import Config, StorageBackend
from fhir_patient_service.fhir.outcome import operation_outcome, validation_outcome
from fhir_patient_service.logging_audit import AuditRecorder, get_logger
from fhir_patient_service.service.patient_service import PatientService
from fhir_patient_service.store.base import ResourceStore
from fhir_patient_service.store.memory import InMemoryPatientStore
from fhir_patient_service.store.seed import seed_store
from fhir_patient_service.store.sql import (
    SqlAuditLogSink,
    SqlPatientStore,
    create_database_engine,
    init_schema,
    ping,
)
from fhir_patient_service.utils.exceptions import (
    FHIRPatientServiceError,
    PreconditionFailedError,
    ResourceNotFoundError,
    ResourceValidationError,
    VersionConflictError,
)


logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


def build_store(config: Config) -> tuple[ResourceStore, Optional[Engine]]:
    """Create the configured store, seeding it when enabled.

    Returns:
        (store, engine) where engine is None for the memory backend

    Raises:
        StoreError: If the SQL backend cannot be initialised
    """
    storage = config.storage
    engine = None
    if storage.backend is StorageBackend.SQL:
        engine = create_database_engine(storage.database_url, echo=storage.echo_sql)
        init_schema(engine)
        store: ResourceStore = SqlPatientStore(engine)
    else:
        store = InMemoryPatientStore()

    if storage.seed_test_data:
        seed_store(store)

    logger.info(f"Using {storage.backend.value} patient store")
    return store, engine


def create_app(
    config: Optional[Config] = None,
    service: Optional[PatientService] = None,
    audit: Optional[AuditRecorder] = None,
) -> Flask:
    """Create the Flask application.

    Args:
        config: Service configuration (defaults when None)
        service: Pre-built PatientService; built from ``config`` when None
        audit: Audit recorder; when None, one is created that also writes
               to ``audit_log`` if the SQL backend is in use

    Returns:
        Configured Flask app

    Example:
        >>> app = create_app(Config())
        >>> client = app.test_client()
        >>> client.get("/fhir/metadata").status_code
        200
    """
    config = config or Config()
    engine = None
    if service is None:
        store, engine = build_store(config)
        service = PatientService(store, config.server.base_url, config.search)

    if audit is None:
        audit = AuditRecorder(SqlAuditLogSink(engine) if engine is not None else None)

    app = Flask(__name__)
    app.extensions[EXTENSION_KEY] = {
        "config": config,
        "service": service,
        "audit": audit,
        "engine": engine,
        "started_at": datetime.now(timezone.utc),
        "request_count": 0,
        "request_lock": threading.Lock(),
    }

    app.register_blueprint(fhir_bp)
    _register_request_hooks(app)
    _register_error_handlers(app)
    _register_service_routes(app)

    logger.info("FHIR Patient Service application initialized")
    return app


def _register_request_hooks(app: Flask) -> None:
    @app.before_request
    def log_request() -> None:
        g.request_started = time.perf_counter()
        state = current_app.extensions[EXTENSION_KEY]
        with state["request_lock"]:
            state["request_count"] += 1
        logger.debug(
            f"{request.method} {request.path} (Content-Length: {request.content_length or 0})"
        )

    @app.after_request
    def add_headers(response: Response) -> Response:
        response.headers.setdefault("Access-Control-Allow-Origin", "*")
        response.headers.setdefault(
            "Access-Control-Expose-Headers", "Location, ETag, Last-Modified"
        )

        started = g.get("request_started")
        duration_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        message = (
            f"{request.method} {request.path} - {response.status_code} "
            f"({duration_ms:.0f}ms) actor={current_actor()}"
        )
        if response.status_code >= 500:
            logger.error(message)
        elif response.status_code >= 400:
            logger.warning(message)
        else:
            logger.info(message)
        return response


def _record_failure(exc: Exception) -> None:
    action = ENDPOINT_ACTIONS.get(request.endpoint or "")
    if action is None:
        return
    audit: AuditRecorder = current_app.extensions[EXTENSION_KEY]["audit"]
    audit.record(
        action,
        (request.view_args or {}).get("resource_id"),
        actor_id=current_actor(),
        status="failure",
        error_message=type(exc).__name__,
    )


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ResourceValidationError)
    def handle_validation(exc: ResourceValidationError):
        _record_failure(exc)
        return fhir_response(validation_outcome(exc.issues), 400)

    @app.errorhandler(ResourceNotFoundError)
    def handle_not_found(exc: ResourceNotFoundError):
        _record_failure(exc)
        return fhir_response(operation_outcome("error", "not-found", str(exc)), 404)

    @app.errorhandler(PreconditionFailedError)
    def handle_precondition_failed(exc: PreconditionFailedError):
        _record_failure(exc)
        return fhir_response(operation_outcome("error", "conflict", str(exc)), 412)

    @app.errorhandler(VersionConflictError)
    def handle_conflict(exc: VersionConflictError):
        _record_failure(exc)
        return fhir_response(operation_outcome("error", "conflict", str(exc)), 409)

    @app.errorhandler(FHIRPatientServiceError)
    def handle_service_error(exc: FHIRPatientServiceError):
        # StoreError and anything else from the service: detail goes to the log only
        logger.error(f"{request.method} {request.path} failed: {exc}", exc_info=exc)
        _record_failure(exc)
        return fhir_response(
            operation_outcome("error", "exception", GENERIC_ERROR_MESSAGE), 500
        )

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        if exc.code == 404:
            message = f"Endpoint not found: {request.method} {request.path}"
            code = "not-found"
        elif exc.code == 405:
            message = f"Method {request.method} not supported for {request.path}"
            code = "not-supported"
        else:
            message = exc.description or exc.name
            code = "processing"
        response = fhir_response(operation_outcome("error", code, message), exc.code or 500)
        valid_methods = getattr(exc, "valid_methods", None)
        if valid_methods:
            response.headers["Allow"] = ", ".join(valid_methods)
        return response

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.path}: {exc}")
        return fhir_response(
            operation_outcome("error", "exception", GENERIC_ERROR_MESSAGE), 500
        )


def _register_service_routes(app: Flask) -> None:
    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check with store connectivity, uptime and request count."""
        state = current_app.extensions[EXTENSION_KEY]
        config: Config = state["config"]
        engine: Optional[Engine] = state["engine"]

        database_ok = ping(engine) if engine is not None else True
        with state["request_lock"]:
            request_count = state["request_count"]
        body: dict[str, Any] = {
            "status": "healthy" if database_ok else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": config.server.server_name,
            "version": config.server.server_version,
            "storage": config.storage.backend.value,
            "uptime_seconds": int(
                (datetime.now(timezone.utc) - state["started_at"]).total_seconds()
            ),
            "request_count": request_count,
        }
        if engine is not None:
            body["database"] = "connected" if database_ok else "unreachable"
        return jsonify(body), 200 if database_ok else 503

    @app.route("/", methods=["GET"])
    @app.route("/fhir", methods=["GET"])
    def root_redirect():
        return redirect(url_for("fhir.metadata"), code=302)


def setup_graceful_shutdown() -> None:
    """Register SIGTERM/SIGINT handlers that log and exit.

    Signal handlers can only be registered in the main thread; elsewhere a
    warning is logged and the server runs without them.
    """
    def shutdown_handler(signum, frame):
        logger.info(f"Received shutdown signal ({signum}), shutting down")
        sys.exit(0)

    try:
        signal.signal(signal.SIGTERM, shutdown_handler)
        signal.signal(signal.SIGINT, shutdown_handler)
    except ValueError as e:
        logger.warning(
            f"Could not register signal handlers (not in main thread): {e}. "
            f"Graceful shutdown via signals will not be available."
        )


def run_server(
    config: Config,
    host: Optional[str] = None,
    port: Optional[int] = None,
    debug: bool = False,
) -> None:
    """Run the Flask development server.

    Args:
        config: Service configuration
        host: Bind address override (default: config.server.host)
        port: Bind port override (default: config.server.port)
        debug: Enable Flask debug mode
    """
    host = host or config.server.host
    port = port or config.server.port

    app = create_app(config)
    setup_graceful_shutdown()

    logger.info(f"Starting {config.server.server_name} on http://{host}:{port}")
    logger.info(f"CapabilityStatement available at: {config.server.base_url}/metadata")

    app.run(host=host, port=port, debug=debug, use_reloader=False)
