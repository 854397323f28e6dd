"""
PropertyFlow - Core Business Logic

Multi-role workflow for property verification:
1. Identity (bearer tokens, password hashing)
2. Role Policy (permitted actions, visible files)
3. Workflow (state machine, payloads, atomic transitions)
4. Notifications & Audit (post-commit dispatch, append-only trail)
5. Management (users, master data)
6. Statistics (overall counts, role dashboards)
"""

from .exceptions import (
    Conflict,
    ConcurrentModification,
    DependencyUnavailable,
    Forbidden,
    InvalidTransition,
    NotFound,
    PropertyFlowError,
    Unauthenticated,
)
from .schema import (
    INITIAL_STATUS,
    NON_TERMINAL_STATES,
    TERMINAL_STATES,
    Actor,
    AuditAction,
    FileStatus,
    NotificationType,
    Position,
    WorkflowEvent,
)
from .store import Database, get_database, reset_database
from .identity import AuthService, TokenService
from .workflow import (
    ClientMeta,
    NotificationService,
    TransitionResult,
    WorkflowEngine,
)
from .management import MasterDataService, UserService
from .stats import StatsService

__all__ = [
    # Errors
    "Conflict",
    "ConcurrentModification",
    "DependencyUnavailable",
    "Forbidden",
    "InvalidTransition",
    "NotFound",
    "PropertyFlowError",
    "Unauthenticated",
    # Schema
    "INITIAL_STATUS",
    "NON_TERMINAL_STATES",
    "TERMINAL_STATES",
    "Actor",
    "AuditAction",
    "FileStatus",
    "NotificationType",
    "Position",
    "WorkflowEvent",
    # Store
    "Database",
    "get_database",
    "reset_database",
    # Identity
    "AuthService",
    "TokenService",
    # Workflow
    "ClientMeta",
    "NotificationService",
    "TransitionResult",
    "WorkflowEngine",
    # Management
    "MasterDataService",
    "UserService",
    # Statistics
    "StatsService",
]
