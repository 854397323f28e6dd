"""
Workflow State Machine - The single transition table for property files.

Every legal status change is one row of ``TRANSITION_TABLE``: a source
status, an event, a guard on the actor, and a target status. Anything not
in the table is illegal. This module is pure: it never touches the record
store, so the engine can resolve a transition before it writes anything.

    validation ──submit_validation──▶ data-entry ──submit_property_data──▶ verification
                                          ▲                                   │
                                          └────────────── reject ─────────────┤
                                                                              ▼ approve
                          completed ◀──mark_printed── ready-to-print ◀────────┘

    any non-terminal ──hold──▶ on-hold ──resume──▶ status it was held from
    any non-terminal ──cancel──▶ cancelled
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Final, Optional

from core.exceptions import Forbidden, InvalidTransition
from core.schema import (
    NON_TERMINAL_STATES,
    Actor,
    FileStatus,
    Position,
    WorkflowEvent,
)


# =============================================================================
# Assignment Snapshot
# =============================================================================


@dataclass(frozen=True)
class FileAssignment:
    """The parts of a property file that guards look at."""

    coordinator_id: Optional[int]
    validator_id: Optional[int]
    key_in_operator_id: Optional[int]
    verification_officer_id: Optional[int]
    held_from_status: Optional[FileStatus] = None

    @classmethod
    def from_record(cls, record) -> "FileAssignment":
        """Build from a PropertyFile row."""
        return cls(
            coordinator_id=record.coordinator_id,
            validator_id=record.validator_id,
            key_in_operator_id=record.key_in_operator_id,
            verification_officer_id=record.verification_officer_id,
            held_from_status=(
                FileStatus(record.held_from_status) if record.held_from_status else None
            ),
        )


# =============================================================================
# Guards
# =============================================================================

# A guard returns None when the actor may fire the event, else the reason.
Guard = Callable[[Actor, FileAssignment], Optional[str]]


def assigned_validator(actor: Actor, file: FileAssignment) -> Optional[str]:
    if actor.position != Position.VALIDATOR:
        return "Only a validator can submit site evidence"
    if actor.id != file.validator_id:
        return "Only the validator assigned to this file can submit site evidence"
    return None


def assigned_key_in_operator(actor: Actor, file: FileAssignment) -> Optional[str]:
    if actor.position != Position.KEY_IN:
        return "Only a key-in operator can submit property data"
    if actor.id != file.key_in_operator_id:
        return "Only the key-in operator assigned to this file can submit property data"
    return None


def verification_officer(actor: Actor, file: FileAssignment) -> Optional[str]:
    if actor.position != Position.VERIFICATION:
        return "Only a verification officer can decide on this file"
    if file.verification_officer_id is not None and actor.id != file.verification_officer_id:
        return "This file is assigned to a different verification officer"
    return None


def print_operator(actor: Actor, file: FileAssignment) -> Optional[str]:
    if actor.automated:
        return None
    return verification_officer(actor, file)


def coordinator_or_admin(actor: Actor, file: FileAssignment) -> Optional[str]:
    if actor.is_admin:
        return None
    if actor.position != Position.COORDINATOR:
        return "Only the file's coordinator or an admin can do this"
    if actor.id != file.coordinator_id:
        return "Only the file's coordinator or an admin can do this"
    return None


def admin_only(actor: Actor, file: FileAssignment) -> Optional[str]:
    if not actor.is_admin:
        return "Only an admin can do this"
    return None


# =============================================================================
# Transition Table
# =============================================================================


@dataclass(frozen=True)
class Transition:
    """
    One row of the transition table.

    ``target`` is None for resume, whose destination is the status the file
    was held from.
    """

    source: FileStatus
    event: WorkflowEvent
    target: Optional[FileStatus]
    guard: Guard

    def resolve_target(self, file: FileAssignment) -> FileStatus:
        if self.target is not None:
            return self.target
        if file.held_from_status is None:
            raise InvalidTransition(
                "File has no recorded status to resume to",
                field="held_from_status",
            )
        return file.held_from_status


# Statuses a file may be placed on hold from
HOLDABLE_STATES: Final[tuple[FileStatus, ...]] = tuple(
    s for s in NON_TERMINAL_STATES if s != FileStatus.ON_HOLD
)


def _build_table() -> tuple[Transition, ...]:
    rows = [
        Transition(FileStatus.VALIDATION, WorkflowEvent.SUBMIT_VALIDATION,
                   FileStatus.DATA_ENTRY, assigned_validator),
        Transition(FileStatus.DATA_ENTRY, WorkflowEvent.SUBMIT_PROPERTY_DATA,
                   FileStatus.VERIFICATION, assigned_key_in_operator),
        Transition(FileStatus.VERIFICATION, WorkflowEvent.APPROVE,
                   FileStatus.READY_TO_PRINT, verification_officer),
        Transition(FileStatus.VERIFICATION, WorkflowEvent.REJECT,
                   FileStatus.DATA_ENTRY, verification_officer),
        Transition(FileStatus.READY_TO_PRINT, WorkflowEvent.MARK_PRINTED,
                   FileStatus.COMPLETED, print_operator),
        Transition(FileStatus.ON_HOLD, WorkflowEvent.RESUME,
                   None, coordinator_or_admin),
    ]
    rows.extend(
        Transition(status, WorkflowEvent.HOLD, FileStatus.ON_HOLD, coordinator_or_admin)
        for status in HOLDABLE_STATES
    )
    rows.extend(
        Transition(status, WorkflowEvent.CANCEL, FileStatus.CANCELLED, admin_only)
        for status in NON_TERMINAL_STATES
    )
    return tuple(rows)


TRANSITION_TABLE: Final[tuple[Transition, ...]] = _build_table()

_INDEX: Final[dict[tuple[FileStatus, WorkflowEvent], Transition]] = {
    (t.source, t.event): t for t in TRANSITION_TABLE
}


# =============================================================================
# Resolution
# =============================================================================


def find_transition(status: FileStatus, event: WorkflowEvent) -> Transition:
    """
    Look up the table row for a status/event pair.

    Raises:
        InvalidTransition: If the pair is not in the table
    """
    transition = _INDEX.get((status, event))
    if transition is None:
        raise InvalidTransition(
            f"Cannot {event.value.replace('_', ' ')} a file in status '{status.value}'",
            field="status",
        )
    return transition


def resolve(
    status: FileStatus,
    event: WorkflowEvent,
    actor: Actor,
    file: FileAssignment,
) -> FileStatus:
    """
    Decide the status an event moves a file to.

    Args:
        status: Current persisted status
        event: Requested event
        actor: Who is firing the event
        file: Assignment snapshot of the file

    Returns:
        The target status

    Raises:
        InvalidTransition: If the event is illegal from ``status``
        Forbidden: If the guard rejects the actor
    """
    transition = find_transition(status, event)
    reason = transition.guard(actor, file)
    if reason is not None:
        raise Forbidden(reason)
    return transition.resolve_target(file)


def available_events(
    status: FileStatus,
    actor: Actor,
    file: FileAssignment,
) -> list[WorkflowEvent]:
    """Events the actor could fire right now, in table order."""
    return [
        t.event
        for t in TRANSITION_TABLE
        if t.source == status and t.guard(actor, file) is None
    ]


def is_legal_step(source: FileStatus, target: FileStatus) -> bool:
    """Check if a consecutive status pair can be produced by some table row."""
    for t in TRANSITION_TABLE:
        if t.source != source:
            continue
        if t.target == target:
            return True
        if t.target is None and target in HOLDABLE_STATES:
            return True
    return False
