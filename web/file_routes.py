"""
File Routes - Property files and their workflow transitions.

Routes:
- GET  /api/files                    - List visible files
- POST /api/files                    - Create a file (coordinator, admin)
- GET  /api/files/formats            - Property formats for data entry
- GET  /api/files/{id}               - File detail with payloads
- POST /api/files/{id}/validation    - Submit site evidence
- POST /api/files/{id}/property-data - Submit property data
- POST /api/files/{id}/approve       - Approve verification
- POST /api/files/{id}/reject        - Reject verification
- POST /api/files/{id}/print         - Mark printed
- POST /api/files/{id}/hold          - Put on hold
- POST /api/files/{id}/resume        - Resume from hold
- POST /api/files/{id}/cancel        - Cancel
- GET  /api/files/{id}/print-sheet   - Printable valuation report (PDF)
- POST /api/files/{id}/documents     - Register an uploaded document

Transition bodies carry ``expected_status``, the status the caller last
saw. A stale value is answered with 409 concurrent_modification.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from core.schema import Actor
from core.workflow import ClientMeta, TransitionResult, list_formats
from reporting.print_sheet import render_print_sheet
from web.dependencies import Services, client_meta, current_actor, get_services
from web.schemas import (
    DecisionRequest,
    DocumentRequest,
    FileCreateRequest,
    PropertyDataRequest,
    ReasonRequest,
    TransitionRequest,
    ValidationRequest,
)

router = APIRouter(prefix="/api/files", tags=["files"])


def _transition_response(result: TransitionResult) -> dict:
    return {
        "file": result.file,
        "previous_status": result.previous_status.value if result.previous_status else None,
        "warnings": result.warnings,
    }


# =============================================================================
# Listing & Creation
# =============================================================================


@router.get("")
def list_files(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    return services.engine.list_files(actor, status, page, page_size)


@router.post("", status_code=201)
def create_file(
    body: FileCreateRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    attributes = body.model_dump(
        exclude={"validator_id", "key_in_operator_id", "verification_officer_id"}
    )
    result = services.engine.create_file(
        actor,
        attributes,
        validator_id=body.validator_id,
        key_in_operator_id=body.key_in_operator_id,
        verification_officer_id=body.verification_officer_id,
        client=client,
    )
    return _transition_response(result)


@router.get("/formats")
def formats(actor: Actor = Depends(current_actor)):
    return list_formats()


@router.get("/{file_id}")
def get_file(
    file_id: int,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    return services.engine.get_file(actor, file_id)


# =============================================================================
# Role Work
# =============================================================================


@router.post("/{file_id}/validation")
def submit_validation(
    file_id: int,
    body: ValidationRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    evidence = body.model_dump(exclude={"expected_status"})
    result = services.engine.submit_validation(
        file_id, actor, evidence, body.expected_status, client
    )
    return _transition_response(result)


@router.post("/{file_id}/property-data")
def submit_property_data(
    file_id: int,
    body: PropertyDataRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    data = body.model_dump(exclude={"expected_status"})
    result = services.engine.submit_property_data(
        file_id, actor, data, body.expected_status, client
    )
    return _transition_response(result)


@router.post("/{file_id}/approve")
def approve(
    file_id: int,
    body: DecisionRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    result = services.engine.approve_verification(
        file_id, actor, body.notes, body.expected_status, client
    )
    return _transition_response(result)


@router.post("/{file_id}/reject")
def reject(
    file_id: int,
    body: DecisionRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    result = services.engine.reject_verification(
        file_id, actor, body.notes, body.expected_status, client
    )
    return _transition_response(result)


@router.post("/{file_id}/print")
def mark_printed(
    file_id: int,
    body: TransitionRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    result = services.engine.mark_printed(file_id, actor, body.expected_status, client)
    return _transition_response(result)


# =============================================================================
# Administrative Transitions
# =============================================================================


@router.post("/{file_id}/hold")
def hold(
    file_id: int,
    body: ReasonRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    result = services.engine.hold(file_id, actor, body.reason, body.expected_status, client)
    return _transition_response(result)


@router.post("/{file_id}/resume")
def resume(
    file_id: int,
    body: TransitionRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    result = services.engine.resume(file_id, actor, body.expected_status, client)
    return _transition_response(result)


@router.post("/{file_id}/cancel")
def cancel(
    file_id: int,
    body: ReasonRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    result = services.engine.cancel(file_id, actor, body.reason, body.expected_status, client)
    return _transition_response(result)


# =============================================================================
# Print Sheet & Documents
# =============================================================================


@router.get("/{file_id}/print-sheet")
def print_sheet(
    file_id: int,
    archive: bool = False,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    output_dir = Path(services.config.reports_dir) if archive else None
    filename, pdf = render_print_sheet(services.database, actor, file_id, output_dir)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


@router.post("/{file_id}/documents", status_code=201)
def add_document(
    file_id: int,
    body: DocumentRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    return services.engine.add_document(
        actor,
        file_id,
        name=body.name,
        file_url=body.file_url,
        document_type=body.document_type,
        file_size=body.file_size,
        mime_type=body.mime_type,
        client=client,
    )
