"""
Role Policy - Which actions each position may perform and which files it sees.

Roles are mutually exclusive and fixed per account, so the policy is a plain
mapping from position to a frozen set of actions.
"""

from __future__ import annotations

from enum import Enum
from typing import Final, Optional

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement

from core.exceptions import Forbidden
from core.schema import Actor, FileStatus, Position, WorkflowEvent
from core.store.models import PropertyFile


class Action(Enum):
    """Operations subject to role policy."""

    FILE_CREATE = "file.create"
    FILE_VIEW = "file.view"
    FILE_SUBMIT_VALIDATION = "file.submit_validation"
    FILE_SUBMIT_PROPERTY_DATA = "file.submit_property_data"
    FILE_VERIFY = "file.verify"
    FILE_PRINT = "file.print"
    FILE_HOLD = "file.hold"
    FILE_CANCEL = "file.cancel"
    DOCUMENT_UPLOAD = "document.upload"
    USER_VIEW = "user.view"
    USER_MANAGE = "user.manage"
    MASTER_DATA_VIEW = "master_data.view"
    MASTER_DATA_MANAGE = "master_data.manage"
    CONFIG_VIEW = "config.view"
    AUDIT_VIEW = "audit.view"
    STATS_OVERALL = "stats.overall"
    STATS_DASHBOARD = "stats.dashboard"


_COMMON: Final[frozenset[Action]] = frozenset({
    Action.FILE_VIEW,
    Action.MASTER_DATA_VIEW,
    Action.STATS_DASHBOARD,
})

ROLE_PERMISSIONS: Final[dict[Position, frozenset[Action]]] = {
    Position.COORDINATOR: _COMMON | {
        Action.FILE_CREATE,
        Action.FILE_HOLD,
        Action.DOCUMENT_UPLOAD,
        Action.USER_VIEW,
        Action.STATS_OVERALL,
    },
    Position.VALIDATOR: _COMMON | {
        Action.FILE_SUBMIT_VALIDATION,
        Action.DOCUMENT_UPLOAD,
    },
    Position.KEY_IN: _COMMON | {
        Action.FILE_SUBMIT_PROPERTY_DATA,
    },
    Position.VERIFICATION: _COMMON | {
        Action.FILE_VERIFY,
        Action.FILE_PRINT,
    },
    Position.ADMIN: frozenset(Action) - {
        Action.FILE_SUBMIT_VALIDATION,
        Action.FILE_SUBMIT_PROPERTY_DATA,
        Action.FILE_VERIFY,
        Action.FILE_PRINT,
    },
}

# Actions the automated completion trigger may perform
AUTOMATED_PERMISSIONS: Final[frozenset[Action]] = frozenset({Action.FILE_PRINT})

# Action each workflow event requires, checked before the per-file guard
EVENT_ACTIONS: Final[dict[WorkflowEvent, Action]] = {
    WorkflowEvent.SUBMIT_VALIDATION: Action.FILE_SUBMIT_VALIDATION,
    WorkflowEvent.SUBMIT_PROPERTY_DATA: Action.FILE_SUBMIT_PROPERTY_DATA,
    WorkflowEvent.APPROVE: Action.FILE_VERIFY,
    WorkflowEvent.REJECT: Action.FILE_VERIFY,
    WorkflowEvent.MARK_PRINTED: Action.FILE_PRINT,
    WorkflowEvent.HOLD: Action.FILE_HOLD,
    WorkflowEvent.RESUME: Action.FILE_HOLD,
    WorkflowEvent.CANCEL: Action.FILE_CANCEL,
}

# Unassigned files in these states are visible to every verification officer
VERIFICATION_POOL_STATES: Final[tuple[str, ...]] = (
    FileStatus.VERIFICATION.value,
    FileStatus.READY_TO_PRINT.value,
    FileStatus.COMPLETED.value,
)


def allowed_actions(actor: Actor) -> frozenset[Action]:
    """Get the set of actions the actor may perform."""
    if actor.automated:
        return AUTOMATED_PERMISSIONS
    if actor.position is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(actor.position, frozenset())


def can(actor: Actor, action: Action) -> bool:
    return action in allowed_actions(actor)


def require_permission(actor: Actor, action: Action) -> None:
    """
    Permit the operation only if it is in the actor's allowed set.

    Raises:
        Forbidden: If the actor's role does not include the action
    """
    if not can(actor, action):
        role = actor.position.value if actor.position else "none"
        raise Forbidden(f"Role '{role}' may not perform {action.value}")


def visible_files_clause(actor: Actor) -> Optional[ColumnElement]:
    """
    SQL condition selecting the files an actor may see.

    Returns None when the actor sees every file.
    """
    if actor.is_admin:
        return None
    if actor.position == Position.COORDINATOR:
        return PropertyFile.coordinator_id == actor.id
    if actor.position == Position.VALIDATOR:
        return PropertyFile.validator_id == actor.id
    if actor.position == Position.KEY_IN:
        return PropertyFile.key_in_operator_id == actor.id
    if actor.position == Position.VERIFICATION:
        return or_(
            PropertyFile.verification_officer_id == actor.id,
            and_(
                PropertyFile.verification_officer_id.is_(None),
                PropertyFile.status.in_(VERIFICATION_POOL_STATES),
            ),
        )
    # Unknown or automated actors see nothing
    return PropertyFile.id.is_(None)
