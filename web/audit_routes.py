"""
Audit Routes - Read-only access to the audit trail (admin).

Routes:
- GET /api/audit-logs - Filter by model, object, user and action
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.exceptions import InvalidTransition
from core.identity.policy import Action, require_permission
from core.schema import Actor, AuditAction
from core.workflow import AuditTrail
from web.dependencies import Services, current_actor, get_services

router = APIRouter(prefix="/api/audit-logs", tags=["audit"])


@router.get("")
def list_audit_logs(
    model_name: Optional[str] = None,
    object_id: Optional[str] = None,
    user_id: Optional[int] = None,
    action_type: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    require_permission(actor, Action.AUDIT_VIEW)
    try:
        action = AuditAction(action_type) if action_type else None
    except ValueError:
        raise InvalidTransition(f"Unknown action type: {action_type}", field="action_type") from None

    with services.database.session_scope() as session:
        entries, total = AuditTrail.query(
            session, model_name, object_id, user_id, action, page, page_size
        )
        results = [e.to_dict() for e in entries]

    return {"results": results, "count": total, "page": page, "page_size": page_size}
