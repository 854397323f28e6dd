"""
PropertyFlow Schema - States, Events, Roles and the Actor Context

Defines the vocabulary shared by the state machine, the record store
and the web layer. Status values are the exact strings persisted in the
database and returned by the API.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final, Optional


# =============================================================================
# Enums
# =============================================================================


class FileStatus(Enum):
    """Status of a property file. This is the state-machine variable."""

    PENDING = "pending"
    VALIDATION = "validation"
    DATA_ENTRY = "data-entry"
    VERIFICATION = "verification"
    READY_TO_PRINT = "ready-to-print"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if no transition may leave this status."""
        return self in TERMINAL_STATES


class WorkflowEvent(Enum):
    """Events that move a property file between statuses."""

    SUBMIT_VALIDATION = "submit_validation"
    SUBMIT_PROPERTY_DATA = "submit_property_data"
    APPROVE = "approve"
    REJECT = "reject"
    MARK_PRINTED = "mark_printed"
    HOLD = "hold"
    RESUME = "resume"
    CANCEL = "cancel"


class Position(Enum):
    """Role of a user account. One per account, fixed."""

    COORDINATOR = "coordinator"
    VALIDATOR = "validator"
    KEY_IN = "key-in"
    VERIFICATION = "verification"
    ADMIN = "admin"


class NotificationType(Enum):
    """Severity of a notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class AuditAction(Enum):
    """Kind of action recorded in the audit trail."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    LOGIN = "login"
    LOGOUT = "logout"


# =============================================================================
# Constants
# =============================================================================

INITIAL_STATUS: Final[FileStatus] = FileStatus.VALIDATION

TERMINAL_STATES: Final[frozenset[FileStatus]] = frozenset(
    {FileStatus.COMPLETED, FileStatus.CANCELLED}
)

NON_TERMINAL_STATES: Final[tuple[FileStatus, ...]] = tuple(
    s for s in FileStatus if s not in TERMINAL_STATES
)

# Status each role acts on (drives dashboard "pending tasks")
ROLE_WORK_STATUS: Final[dict[Position, FileStatus]] = {
    Position.VALIDATOR: FileStatus.VALIDATION,
    Position.KEY_IN: FileStatus.DATA_ENTRY,
    Position.VERIFICATION: FileStatus.VERIFICATION,
}

FILE_CODE_DIGITS: Final[int] = 6


def format_file_code(prefix: str, sequence: int) -> str:
    """Format the human-readable file code, e.g. ``JA000042``."""
    return f"{prefix}{sequence:0{FILE_CODE_DIGITS}d}"


# =============================================================================
# Actor
# =============================================================================


@dataclass(frozen=True)
class Actor:
    """
    The resolved identity performing an operation.

    Passed explicitly into every workflow operation. ``automated`` marks the
    completion trigger that may mark files printed without a human officer.
    """

    id: Optional[int]
    full_name: str
    position: Optional[Position]
    automated: bool = False

    @classmethod
    def automated_completion(cls) -> "Actor":
        """Actor used by the automated print-completion trigger."""
        return cls(id=None, full_name="automated-completion", position=None, automated=True)

    def has_position(self, *positions: Position) -> bool:
        """Check if the actor holds one of the given positions."""
        return self.position in positions

    @property
    def is_admin(self) -> bool:
        return self.position == Position.ADMIN

    def to_dict(self) -> dict:
        """Convert to dictionary for serialisation."""
        return {
            "id": self.id,
            "full_name": self.full_name,
            "position": self.position.value if self.position else None,
            "automated": self.automated,
        }
