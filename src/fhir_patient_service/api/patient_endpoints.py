"""FHIR Patient endpoints.

Blueprint mounted under ``/fhir``. Each view delegates to the PatientService
stored in ``current_app.extensions`` and records an audit entry on success;
failures propagate to the error handlers registered by ``create_app``.
"""

from typing import Any

from flask import Blueprint, Response, current_app, request

from fhir_patient_service.api.responses import fhir_response, parse_if_match, version_etag
from fhir_patient_service.fhir.capability import build_capability_statement
from fhir_patient_service.fhir.mapping import parse_instant
from fhir_patient_service.logging_audit import AuditRecorder
from fhir_patient_service.models.resource import PatientResource
from fhir_patient_service.service.patient_service import PatientService
from fhir_patient_service.utils.exceptions import ResourceNotFoundError, ResourceValidationError

EXTENSION_KEY = "fhir_patient_service"

fhir_bp = Blueprint("fhir", __name__, url_prefix="/fhir")

# View endpoint -> audit action
ENDPOINT_ACTIONS = {
    "fhir.search_patients": "search",
    "fhir.read_patient": "read",
    "fhir.create_patient": "create",
    "fhir.update_patient": "update",
    "fhir.delete_patient": "delete",
    "fhir.patient_everything": "everything",
}


def _state() -> dict[str, Any]:
    return current_app.extensions[EXTENSION_KEY]


def _service() -> PatientService:
    return _state()["service"]


def _audit() -> AuditRecorder:
    return _state()["audit"]


def current_actor() -> str:
    """Caller identity set by the fronting auth layer, else ``anonymous``."""
    return request.remote_user or "anonymous"


def _request_payload() -> Any:
    payload = request.get_json(silent=True)
    if payload is None:
        raise ResourceValidationError([
            "Request body must be a JSON Patient resource "
            "(Content-Type: application/json or application/fhir+json)"
        ])
    return payload


def _resource_response(resource: PatientResource, status: int = 200) -> Response:
    response = fhir_response(resource.to_dict(), status)
    response.headers["ETag"] = version_etag(resource.meta.version_id)
    last_modified = parse_instant(resource.meta.last_updated)
    if last_modified is not None:
        response.last_modified = last_modified
    return response


@fhir_bp.route("/metadata", methods=["GET"])
def metadata() -> Response:
    """CapabilityStatement; served without authentication."""
    server = _state()["config"].server
    return fhir_response(build_capability_statement(
        base_url=server.base_url,
        server_name=server.server_name,
        server_version=server.server_version,
    ))


@fhir_bp.route("/Patient", methods=["GET"])
def search_patients() -> Response:
    service = _service()
    params = service.parse_search(request.args)
    bundle = service.search(params)
    details: dict[str, Any] = {"result_count": bundle.total}
    if params.filters:
        details["parameters"] = params.filters
    _audit().record("search", None, actor_id=current_actor(), **details)
    return fhir_response(bundle.to_dict())


@fhir_bp.route("/Patient/<resource_id>", methods=["GET"])
def read_patient(resource_id: str) -> Response:
    resource = _service().read(resource_id)
    _audit().record("read", resource_id, actor_id=current_actor())
    return _resource_response(resource)


@fhir_bp.route("/Patient", methods=["POST"])
def create_patient() -> Response:
    service = _service()
    resource = service.create(_request_payload())
    _audit().record(
        "create", resource.id, actor_id=current_actor(), version=resource.meta.version_id
    )
    response = _resource_response(resource, 201)
    response.headers["Location"] = f"{service.base_url}/Patient/{resource.id}"
    return response


@fhir_bp.route("/Patient/<resource_id>", methods=["PUT"])
def update_patient(resource_id: str) -> Response:
    if_match = parse_if_match(request.headers.get("If-Match"))
    resource = _service().update(resource_id, _request_payload(), if_match=if_match)
    _audit().record(
        "update", resource_id, actor_id=current_actor(), version=resource.meta.version_id
    )
    return _resource_response(resource)


@fhir_bp.route("/Patient/<resource_id>", methods=["DELETE"])
def delete_patient(resource_id: str) -> Response:
    if not _service().delete(resource_id):
        # Removed by a concurrent request between lookup and delete
        raise ResourceNotFoundError(resource_id)
    _audit().record("delete", resource_id, actor_id=current_actor())
    return Response(status=204)


@fhir_bp.route("/Patient/<resource_id>/$everything", methods=["GET"])
def patient_everything(resource_id: str) -> Response:
    bundle = _service().everything(resource_id)
    _audit().record(
        "everything", resource_id, actor_id=current_actor(), result_count=bundle.total
    )
    return fhir_response(bundle.to_dict())
