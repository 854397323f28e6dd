"""
PropertyFlow Workflow

The state machine, typed transition payloads, notification dispatch,
audit trail and the engine that ties them into atomic transitions.
"""

from core.workflow.audit import AuditTrail, ClientMeta
from core.workflow.engine import TransitionResult, WorkflowEngine
from core.workflow.formats import PROPERTY_FORMATS, list_formats, validate_custom_data
from core.workflow.machine import (
    TRANSITION_TABLE,
    FileAssignment,
    Transition,
    available_events,
    is_legal_step,
    resolve,
)
from core.workflow.notifications import (
    DatabaseNotificationSink,
    Delivery,
    NotificationDispatcher,
    NotificationMessage,
    NotificationService,
    NotificationSink,
)
from core.workflow.payloads import PhotoRef, PropertyDataEntry, ValidationEvidence

__all__ = [
    # Machine
    "TRANSITION_TABLE",
    "FileAssignment",
    "Transition",
    "available_events",
    "is_legal_step",
    "resolve",
    # Payloads
    "PROPERTY_FORMATS",
    "PhotoRef",
    "PropertyDataEntry",
    "ValidationEvidence",
    "list_formats",
    "validate_custom_data",
    # Notifications
    "DatabaseNotificationSink",
    "Delivery",
    "NotificationDispatcher",
    "NotificationMessage",
    "NotificationService",
    "NotificationSink",
    # Audit
    "AuditTrail",
    "ClientMeta",
    # Engine
    "TransitionResult",
    "WorkflowEngine",
]
