"""
Workflow Engine - Guarded, atomic status transitions for property files.

Every transition follows the same sequence inside one transaction:

1. load the file
2. compare the caller's ``expected_status`` with the persisted status
3. resolve the event against the transition table (legality, then guard)
4. validate the event payload
5. conditional update keyed on the status read in step 1
6. write payload rows
7. append one audit entry

Notifications are dispatched only after the commit, so when two callers race
from the same status only the one whose conditional update matched notifies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from sqlalchemy.orm import Session

from core.exceptions import (
    ConcurrentModification,
    Conflict,
    Forbidden,
    InvalidTransition,
    NotFound,
)
from core.identity.policy import (
    EVENT_ACTIONS,
    Action,
    can,
    require_permission,
    visible_files_clause,
)
from core.schema import (
    INITIAL_STATUS,
    Actor,
    AuditAction,
    FileStatus,
    NotificationType,
    Position,
    WorkflowEvent,
)
from core.store.database import Database
from core.store.models import (
    Document,
    PropertyData,
    PropertyFile,
    ValidationData,
    ValidationPhoto,
    utcnow,
)
from core.store.repository import FileRepository, MasterDataRepository, UserRepository
from core.workflow.audit import AuditTrail, ClientMeta
from core.workflow.machine import FileAssignment, available_events, find_transition, resolve
from core.workflow.notifications import (
    DatabaseNotificationSink,
    Delivery,
    NotificationDispatcher,
    NotificationMessage,
    NotificationSink,
)
from core.workflow.payloads import PropertyDataEntry, ValidationEvidence, require_notes

logger = logging.getLogger(__name__)

AUDIT_MODEL = "PropertyFile"

# Inserts attempted before a file-code collision is reported as retryable
FILE_CODE_ATTEMPTS = 2

StatusLike = Union[FileStatus, str, None]


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class TransitionResult:
    """Outcome of a committed workflow operation."""

    file: dict[str, Any]
    previous_status: Optional[FileStatus]
    notifications_sent: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def status(self) -> FileStatus:
        return FileStatus(self.file["status"])

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "previous_status": self.previous_status.value if self.previous_status else None,
            "notifications_sent": self.notifications_sent,
            "warnings": list(self.warnings),
        }


@dataclass
class _Step:
    """What one event does beyond the status change."""

    event: WorkflowEvent
    prepare: Optional[Callable[[], Any]] = None
    values: Optional[Callable[[PropertyFile, FileStatus, Any], dict[str, Any]]] = None
    write: Optional[Callable[[Session, PropertyFile, Any], None]] = None
    notify: Optional[Callable[[PropertyFile, FileStatus, FileStatus, Any], list[Delivery]]] = None
    audit_detail: dict[str, Any] = field(default_factory=dict)


def _coerce_status(value: StatusLike) -> Optional[FileStatus]:
    if value is None or isinstance(value, FileStatus):
        return value
    try:
        return FileStatus(value)
    except ValueError:
        raise InvalidTransition(
            f"Unknown status: {value}", field="expected_status"
        ) from None


def _assignee_for(record: PropertyFile, status: Optional[FileStatus]) -> Optional[int]:
    """User responsible for a file while it sits in ``status``."""
    if status == FileStatus.VALIDATION:
        return record.validator_id
    if status == FileStatus.DATA_ENTRY:
        return record.key_in_operator_id
    if status in (FileStatus.VERIFICATION, FileStatus.READY_TO_PRINT):
        return record.verification_officer_id
    return None


# =============================================================================
# Engine
# =============================================================================


class WorkflowEngine:
    """
    Applies workflow operations to property files.

    Usage:
        engine = WorkflowEngine(get_database())
        result = engine.submit_validation(file_id, actor, evidence)
    """

    def __init__(
        self,
        database: Database,
        sink: Optional[NotificationSink] = None,
        file_code_prefix: str = "JA",
    ):
        self.database = database
        self.dispatcher = NotificationDispatcher(sink or DatabaseNotificationSink(database))
        self.file_code_prefix = file_code_prefix

    # -------------------------------------------------------------------------
    # Core transition
    # -------------------------------------------------------------------------

    def _run(
        self,
        file_id: int,
        actor: Actor,
        step: _Step,
        expected_status: StatusLike = None,
        client: Optional[ClientMeta] = None,
    ) -> TransitionResult:
        expected = _coerce_status(expected_status)

        with self.database.session_scope() as session:
            record = FileRepository.get(session, file_id)
            current = record.status_enum

            if expected is not None and expected != current:
                raise ConcurrentModification(
                    f"File {record.file_code} is '{current.value}', "
                    f"not '{expected.value}'; reload and retry"
                )

            assignment = FileAssignment.from_record(record)
            try:
                find_transition(current, step.event)
                require_permission(actor, EVENT_ACTIONS[step.event])
                target = resolve(current, step.event, actor, assignment)
            except Forbidden as e:
                logger.warning(
                    "Denied %s on file %s for %s: %s",
                    step.event.value, record.file_code, actor.full_name, e.message,
                )
                raise

            payload = step.prepare() if step.prepare else None

            values = {"status": target.value}
            if step.values:
                values.update(step.values(record, target, payload))

            if not FileRepository.conditional_update(session, record.id, current, values):
                raise ConcurrentModification(
                    f"File {record.file_code} was changed by another user; reload and retry"
                )
            session.refresh(record)

            if step.write:
                step.write(session, record, payload)

            changes = {
                "event": step.event.value,
                "status": {"before": current.value, "after": target.value},
            }
            changes.update(step.audit_detail)
            AuditTrail.record(
                session, actor.id, AuditAction.UPDATE, AUDIT_MODEL,
                record.id, record.file_code, changes, client,
            )

            deliveries = step.notify(record, current, target, payload) if step.notify else []
            session.flush()
            file_data = record.to_dict()

        logger.info(
            "File %s: %s -> %s (%s by %s)",
            file_data["file_code"], current.value, target.value,
            step.event.value, actor.full_name,
        )
        sent, warnings = self.dispatcher.dispatch(deliveries)
        return TransitionResult(
            file=file_data,
            previous_status=current,
            notifications_sent=sent,
            warnings=warnings,
        )

    @staticmethod
    def _message(
        actor: Actor,
        title: str,
        text: str,
        action_type: str,
        kind: NotificationType = NotificationType.INFO,
    ) -> NotificationMessage:
        return NotificationMessage(
            title=title, message=text, action_type=action_type,
            type=kind, sender_id=actor.id,
        )

    # -------------------------------------------------------------------------
    # File creation
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_member(session: Session, user_id: Any, position: Position, name: str) -> int:
        """Check a referenced user exists, is active and holds ``position``."""
        if user_id is None:
            raise InvalidTransition(f"{name} is required", field=name)
        try:
            user = UserRepository.get(session, int(user_id))
        except (NotFound, TypeError, ValueError):
            raise InvalidTransition(f"{name} does not reference a user", field=name) from None
        if not user.is_active:
            raise InvalidTransition(f"{name} references an inactive user", field=name)
        if user.position != position.value:
            raise InvalidTransition(
                f"{name} must reference a {position.value} user", field=name
            )
        return user.id

    def create_file(
        self,
        actor: Actor,
        attributes: dict[str, Any],
        validator_id: Any,
        key_in_operator_id: Any,
        verification_officer_id: Any = None,
        client: Optional[ClientMeta] = None,
    ) -> TransitionResult:
        """
        Create a property file in the initial status.

        Args:
            actor: Coordinator or admin creating the file
            attributes: property_address, owner_name and optional owner_contact,
                village, bank_id, property_type_id, location_id,
                coordinator_comments, coordinator_id (admin only)
            validator_id: Active validator to visit the site
            key_in_operator_id: Active key-in operator to enter the data
            verification_officer_id: Optional verification officer

        Raises:
            Forbidden: If the actor may not create files
            InvalidTransition: If a required attribute or reference is invalid
            ConcurrentModification: If concurrent creates keep taking the file code
        """
        require_permission(actor, Action.FILE_CREATE)

        address = (attributes.get("property_address") or "").strip()
        if not address:
            raise InvalidTransition("Property address is required", field="property_address")
        owner = (attributes.get("owner_name") or "").strip()
        if not owner:
            raise InvalidTransition("Owner name is required", field="owner_name")

        for attempt in range(1, FILE_CODE_ATTEMPTS + 1):
            try:
                with self.database.session_scope() as session:
                    file_data, validator, key_in = self._insert_file(
                        session, actor, attributes, address, owner,
                        validator_id, key_in_operator_id, verification_officer_id, client,
                    )
                break
            except Conflict as e:
                if attempt == FILE_CODE_ATTEMPTS:
                    raise ConcurrentModification(
                        "File code was taken by a concurrent create; retry"
                    ) from e
                logger.warning("File code collision on create, retrying (attempt %d)", attempt)

        code = file_data["file_code"]
        deliveries = [
            Delivery(validator, file_data["id"], self._message(
                actor, "New File Assignment",
                f"You have been assigned to validate file {code}", "file_assigned",
            )),
            Delivery(key_in, file_data["id"], self._message(
                actor, "Future Assignment",
                f"File {code} will come to you for data entry after validation",
                "file_assigned",
            )),
        ]
        logger.info("Created file %s by %s", code, actor.full_name)
        sent, warnings = self.dispatcher.dispatch(deliveries)
        return TransitionResult(file_data, None, sent, warnings)

    def _insert_file(
        self,
        session: Session,
        actor: Actor,
        attributes: dict[str, Any],
        address: str,
        owner: str,
        validator_id: Any,
        key_in_operator_id: Any,
        verification_officer_id: Any,
        client: Optional[ClientMeta],
    ) -> tuple[dict[str, Any], int, int]:
        """Insert the file row and its audit entry; returns (file, validator, key-in)."""
        if actor.is_admin and attributes.get("coordinator_id") is not None:
            coordinator_id = self._require_member(
                session, attributes["coordinator_id"], Position.COORDINATOR, "coordinator_id"
            )
        else:
            coordinator_id = actor.id

        validator = self._require_member(
            session, validator_id, Position.VALIDATOR, "validator_id"
        )
        key_in = self._require_member(
            session, key_in_operator_id, Position.KEY_IN, "key_in_operator_id"
        )
        officer = None
        if verification_officer_id is not None:
            officer = self._require_member(
                session, verification_officer_id, Position.VERIFICATION,
                "verification_officer_id",
            )

        for kind, name in (
            ("bank", "bank_id"),
            ("property_type", "property_type_id"),
            ("location", "location_id"),
        ):
            if attributes.get(name) is not None:
                try:
                    MasterDataRepository.get(session, kind, int(attributes[name]))
                except (NotFound, TypeError, ValueError):
                    raise InvalidTransition(
                        f"{name} does not reference a known record", field=name
                    ) from None

        record = PropertyFile(
            file_code=FileRepository.next_file_code(session, self.file_code_prefix),
            bank_id=attributes.get("bank_id"),
            property_type_id=attributes.get("property_type_id"),
            location_id=attributes.get("location_id"),
            property_address=address,
            owner_name=owner,
            owner_contact=attributes.get("owner_contact"),
            village=attributes.get("village"),
            coordinator_comments=attributes.get("coordinator_comments"),
            coordinator_id=coordinator_id,
            validator_id=validator,
            key_in_operator_id=key_in,
            verification_officer_id=officer,
            status=INITIAL_STATUS.value,
        )
        session.add(record)
        session.flush()

        AuditTrail.record(
            session, actor.id, AuditAction.CREATE, AUDIT_MODEL,
            record.id, record.file_code,
            {"status": {"before": None, "after": INITIAL_STATUS.value}},
            client,
        )
        file_data = record.to_dict()
        return file_data, validator, key_in

    # -------------------------------------------------------------------------
    # Role work
    # -------------------------------------------------------------------------

    def submit_validation(
        self,
        file_id: int,
        actor: Actor,
        evidence: Union[ValidationEvidence, dict[str, Any]],
        expected_status: StatusLike = None,
        client: Optional[ClientMeta] = None,
    ) -> TransitionResult:
        """Record site evidence and move the file to data entry."""

        def prepare() -> ValidationEvidence:
            if isinstance(evidence, ValidationEvidence):
                return evidence
            return ValidationEvidence.from_dict(evidence)

        def write(session: Session, record: PropertyFile, ev: ValidationEvidence) -> None:
            if record.validation_data is not None:
                session.delete(record.validation_data)
                session.flush()
            data = ValidationData(
                property_file=record,
                gps_latitude=ev.gps_latitude,
                gps_longitude=ev.gps_longitude,
                gps_accuracy=ev.gps_accuracy,
                property_condition=ev.property_condition,
                access_notes=ev.access_notes,
                visit_date=ev.visit_date,
                visit_time=ev.visit_time,
                weather_conditions=ev.weather_conditions,
                property_type=ev.property_type,
                extended_data=ev.extended_data,
                validated_by=actor.id,
            )
            data.photos = [
                ValidationPhoto(photo_url=p.url, photo_type=p.photo_type, caption=p.caption)
                for p in ev.photos
            ]
            session.add(data)

        def notify(record, current, target, ev) -> list[Delivery]:
            return [Delivery(record.key_in_operator_id, record.id, self._message(
                actor, "Data Entry Ready",
                f"File {record.file_code} has been validated and is ready for data entry",
                "data_entry_ready",
            ))]

        step = _Step(WorkflowEvent.SUBMIT_VALIDATION, prepare=prepare, write=write, notify=notify)
        return self._run(file_id, actor, step, expected_status, client)

    def submit_property_data(
        self,
        file_id: int,
        actor: Actor,
        data: Union[PropertyDataEntry, dict[str, Any]],
        expected_status: StatusLike = None,
        client: Optional[ClientMeta] = None,
    ) -> TransitionResult:
        """Record a property-data revision and move the file to verification."""

        def prepare() -> PropertyDataEntry:
            if isinstance(data, PropertyDataEntry):
                return data
            return PropertyDataEntry.from_dict(data)

        def write(session: Session, record: PropertyFile, entry: PropertyDataEntry) -> None:
            record.property_data_revisions.append(
                PropertyData(
                    revision=len(record.property_data_revisions) + 1,
                    entered_by=actor.id,
                    **entry.column_values(),
                )
            )

        def notify(record, current, target, entry) -> list[Delivery]:
            # Unassigned files go to every verification officer
            return [Delivery(record.verification_officer_id, record.id, self._message(
                actor, "Verification Required",
                f"File {record.file_code} is ready for verification",
                "verification_ready",
            ))]

        step = _Step(
            WorkflowEvent.SUBMIT_PROPERTY_DATA, prepare=prepare, write=write, notify=notify,
        )
        return self._run(file_id, actor, step, expected_status, client)

    def approve_verification(
        self,
        file_id: int,
        actor: Actor,
        notes: Optional[str] = None,
        expected_status: StatusLike = None,
        client: Optional[ClientMeta] = None,
    ) -> TransitionResult:
        """Approve the keyed-in data; the file becomes ready to print."""

        def values(record, target, payload) -> dict[str, Any]:
            result = {"verification_notes": notes}
            if record.verification_officer_id is None:
                result["verification_officer_id"] = actor.id
            return result

        def notify(record, current, target, payload) -> list[Delivery]:
            return [Delivery(record.coordinator_id, record.id, self._message(
                actor, "File Approved",
                f"File {record.file_code} has been approved and is ready to print",
                "ready_to_print", NotificationType.SUCCESS,
            ))]

        step = _Step(WorkflowEvent.APPROVE, values=values, notify=notify,
                     audit_detail={"notes": notes})
        return self._run(file_id, actor, step, expected_status, client)

    def reject_verification(
        self,
        file_id: int,
        actor: Actor,
        notes: Optional[str],
        expected_status: StatusLike = None,
        client: Optional[ClientMeta] = None,
    ) -> TransitionResult:
        """Send the file back to data entry with the reasons for rejection."""

        def values(record, target, reason) -> dict[str, Any]:
            result = {"verification_notes": reason}
            if record.verification_officer_id is None:
                result["verification_officer_id"] = actor.id
            return result

        def notify(record, current, target, reason) -> list[Delivery]:
            return [Delivery(record.key_in_operator_id, record.id, self._message(
                actor, "File Rejected",
                f"File {record.file_code} was sent back for corrections: {reason}",
                "file_rejected", NotificationType.WARNING,
            ))]

        step = _Step(
            WorkflowEvent.REJECT,
            prepare=lambda: require_notes(notes),
            values=values,
            notify=notify,
            audit_detail={"notes": notes},
        )
        return self._run(file_id, actor, step, expected_status, client)

    def mark_printed(
        self,
        file_id: int,
        actor: Actor,
        expected_status: StatusLike = None,
        client: Optional[ClientMeta] = None,
    ) -> TransitionResult:
        """Record that the report was printed; the file is completed."""

        def notify(record, current, target, payload) -> list[Delivery]:
            return [Delivery(record.coordinator_id, record.id, self._message(
                actor, "File Completed",
                f"File {record.file_code} has been printed and completed",
                "file_completed", NotificationType.SUCCESS,
            ))]

        step = _Step(
            WorkflowEvent.MARK_PRINTED,
            values=lambda record, target, payload: {"printed_at": utcnow()},
            notify=notify,
        )
        return self._run(file_id, actor, step, expected_status, client)

    def auto_complete(self, file_id: int, expected_status: StatusLike = None) -> TransitionResult:
        """Mark a file printed on behalf of the automated completion trigger."""
        return self.mark_printed(file_id, Actor.automated_completion(), expected_status)

    # -------------------------------------------------------------------------
    # Administrative transitions
    # -------------------------------------------------------------------------

    def _admin_deliveries(
        self,
        actor: Actor,
        record: PropertyFile,
        affected: Optional[FileStatus],
        title: str,
        text: str,
        action_type: str,
        kind: NotificationType,
    ) -> list[Delivery]:
        recipients: list[int] = []
        for user_id in (record.coordinator_id, _assignee_for(record, affected)):
            if user_id is not None and user_id != actor.id and user_id not in recipients:
                recipients.append(user_id)
        message = self._message(actor, title, text, action_type, kind)
        return [Delivery(user_id, record.id, message) for user_id in recipients]

    def hold(
        self,
        file_id: int,
        actor: Actor,
        reason: Optional[str] = None,
        expected_status: StatusLike = None,
        client: Optional[ClientMeta] = None,
    ) -> TransitionResult:
        """Pause a file, remembering the status to resume to."""

        def notify(record, current, target, payload) -> list[Delivery]:
            suffix = f": {reason}" if reason else ""
            return self._admin_deliveries(
                actor, record, current, "File On Hold",
                f"File {record.file_code} has been put on hold{suffix}",
                "file_on_hold", NotificationType.WARNING,
            )

        step = _Step(
            WorkflowEvent.HOLD,
            values=lambda record, target, payload: {"held_from_status": record.status},
            notify=notify,
            audit_detail={"reason": reason},
        )
        return self._run(file_id, actor, step, expected_status, client)

    def resume(
        self,
        file_id: int,
        actor: Actor,
        expected_status: StatusLike = None,
        client: Optional[ClientMeta] = None,
    ) -> TransitionResult:
        """Return a held file to the exact status it was held from."""

        def notify(record, current, target, payload) -> list[Delivery]:
            return self._admin_deliveries(
                actor, record, target, "File Resumed",
                f"File {record.file_code} has resumed at '{target.value}'",
                "file_resumed", NotificationType.INFO,
            )

        step = _Step(
            WorkflowEvent.RESUME,
            values=lambda record, target, payload: {"held_from_status": None},
            notify=notify,
        )
        return self._run(file_id, actor, step, expected_status, client)

    def cancel(
        self,
        file_id: int,
        actor: Actor,
        reason: Optional[str] = None,
        expected_status: StatusLike = None,
        client: Optional[ClientMeta] = None,
    ) -> TransitionResult:
        """Cancel a file permanently."""
        held_from: dict[str, Optional[FileStatus]] = {}

        def values(record, target, payload) -> dict[str, Any]:
            held_from["status"] = record.held_from_enum
            return {"held_from_status": None}

        def notify(record, current, target, payload) -> list[Delivery]:
            # held_from_status is cleared by now, use the value read before the update
            affected = held_from.get("status") or current
            suffix = f": {reason}" if reason else ""
            return self._admin_deliveries(
                actor, record, affected, "File Cancelled",
                f"File {record.file_code} has been cancelled{suffix}",
                "file_cancelled", NotificationType.ERROR,
            )

        step = _Step(
            WorkflowEvent.CANCEL,
            values=values,
            notify=notify,
            audit_detail={"reason": reason},
        )
        return self._run(file_id, actor, step, expected_status, client)

    # -------------------------------------------------------------------------
    # Reads and attachments
    # -------------------------------------------------------------------------

    def get_file(self, actor: Actor, file_id: int) -> dict[str, Any]:
        """
        Get one file with its payloads and the events the actor can fire.

        Raises:
            NotFound: If the file is absent or outside the actor's visible set
        """
        require_permission(actor, Action.FILE_VIEW)
        with self.database.session_scope() as session:
            record = FileRepository.get_visible(session, file_id, visible_files_clause(actor))
            data = record.to_dict()
            data["available_events"] = [
                e.value
                for e in available_events(
                    record.status_enum, actor, FileAssignment.from_record(record)
                )
                if can(actor, EVENT_ACTIONS[e])
            ]
        return data

    def list_files(
        self,
        actor: Actor,
        status: StatusLike = None,
        page: int = 1,
        page_size: int = 25,
    ) -> dict[str, Any]:
        """List the files visible to the actor, newest first."""
        require_permission(actor, Action.FILE_VIEW)
        try:
            status_filter = _coerce_status(status)
        except InvalidTransition:
            raise InvalidTransition(f"Unknown status: {status}", field="status") from None

        with self.database.session_scope() as session:
            records, total = FileRepository.list(
                session, visible_files_clause(actor), status_filter, page, page_size
            )
            files = [r.to_summary_dict() for r in records]
        return {"files": files, "count": total, "page": page, "page_size": page_size}

    def add_document(
        self,
        actor: Actor,
        file_id: int,
        name: str,
        file_url: str,
        document_type: str = "other",
        file_size: Optional[int] = None,
        mime_type: Optional[str] = None,
        client: Optional[ClientMeta] = None,
    ) -> dict[str, Any]:
        """
        Register an uploaded document locator against a visible file.

        Raises:
            InvalidTransition: If the file is terminal or a locator is missing
        """
        require_permission(actor, Action.DOCUMENT_UPLOAD)
        if not name or not name.strip():
            raise InvalidTransition("Document name is required", field="name")
        if not file_url or not file_url.strip():
            raise InvalidTransition("Document URL is required", field="file_url")

        with self.database.session_scope() as session:
            record = FileRepository.get_visible(session, file_id, visible_files_clause(actor))
            if record.status_enum.is_terminal:
                raise InvalidTransition(
                    f"Cannot attach documents to a {record.status} file", field="status"
                )
            document = Document(
                property_file_id=record.id,
                name=name.strip(),
                document_type=document_type or "other",
                file_url=file_url.strip(),
                file_size=file_size,
                mime_type=mime_type,
                uploaded_by=actor.id,
            )
            session.add(document)
            session.flush()
            AuditTrail.record(
                session, actor.id, AuditAction.CREATE, "Document",
                document.id, document.name,
                {"property_file_id": record.id, "file_url": document.file_url},
                client,
            )
            return document.to_dict()
