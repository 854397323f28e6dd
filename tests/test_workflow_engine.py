"""
Tests for the Workflow Engine

Tests covering:
1. File creation checks assignees and master data, and notifies both assignees
2. Each role's transition writes its payload and notifies the next role
3. Invalid payloads and unauthorised actors leave the file untouched
4. Reject, resubmit and approve keeps every property-data revision
5. Hold and resume restore the exact prior status
6. Cancel is reachable from every non-terminal status and is final
7. Every transition appends exactly one audit entry
8. A failing notification sink never undoes a transition
9. Transitions need the role action as well as the per-file assignment
10. A file-code collision on create is retried, then reported as retryable
"""

from __future__ import annotations

import pytest

from conftest import FailingSink, RecordingSink
from core.exceptions import (
    ConcurrentModification,
    Forbidden,
    InvalidTransition,
    NotFound,
)
from core.identity.policy import EVENT_ACTIONS, ROLE_PERMISSIONS, Action
from core.schema import NON_TERMINAL_STATES, FileStatus, Position, WorkflowEvent
from core.store.models import AuditLogEntry, PropertyFile
from core.store.repository import FileRepository
from core.workflow import ClientMeta, WorkflowEngine
from core.workflow.machine import find_transition, is_legal_step


def status_of(database, file_id: int) -> FileStatus:
    with database.session_scope() as session:
        return FileStatus(session.get(PropertyFile, file_id).status)


def file_audit(database, file_id: int) -> list[dict]:
    with database.session_scope() as session:
        entries = (
            session.query(AuditLogEntry)
            .filter(AuditLogEntry.model_name == "PropertyFile",
                    AuditLogEntry.object_id == str(file_id))
            .order_by(AuditLogEntry.id)
        )
        return [e.to_dict() for e in entries]


# =============================================================================
# Creation
# =============================================================================


class TestCreateFile:
    """create_file validates references and starts in validation."""

    def test_created_in_validation_with_file_code(self, engine, staff, master_data):
        result = engine.create_file(
            staff.coordinator,
            {"property_address": "1 Lake View", "owner_name": "Meera",
             "bank_id": master_data.bank_id},
            validator_id=staff.validator.id,
            key_in_operator_id=staff.key_in.id,
        )
        assert result.status == FileStatus.VALIDATION
        assert result.previous_status is None
        assert result.file["file_code"] == "JA000001"
        assert result.file["coordinator_id"] == staff.coordinator.id
        assert result.file["bank"]["name"] == "State Bank"

    def test_file_codes_are_sequential(self, make_file, engine, staff):
        make_file()
        second = make_file()
        assert engine.get_file(staff.admin, second)["file_code"] == "JA000002"

    def test_file_code_collision_retried_once(self, make_file, engine, staff, monkeypatch):
        make_file()
        original = FileRepository.next_file_code
        calls = []

        def colliding(session, prefix):
            calls.append(prefix)
            return "JA000001" if len(calls) == 1 else original(session, prefix)

        monkeypatch.setattr(FileRepository, "next_file_code", staticmethod(colliding))
        second = make_file()
        assert len(calls) == 2
        assert engine.get_file(staff.admin, second)["file_code"] == "JA000002"

    def test_persistent_collision_is_retryable(self, make_file, database, monkeypatch):
        make_file()
        monkeypatch.setattr(
            FileRepository, "next_file_code", staticmethod(lambda session, prefix: "JA000001")
        )
        with pytest.raises(ConcurrentModification) as exc_info:
            make_file()
        assert exc_info.value.retryable is True
        with database.session_scope() as session:
            assert session.query(PropertyFile).count() == 1

    def test_both_assignees_notified(self, make_file, staff, notifications_of):
        file_id = make_file()
        to_validator = notifications_of(staff.validator.id, "file_assigned")
        to_key_in = notifications_of(staff.key_in.id, "file_assigned")
        assert [n["title"] for n in to_validator] == ["New File Assignment"]
        assert [n["title"] for n in to_key_in] == ["Future Assignment"]
        assert to_validator[0]["property_file_id"] == file_id
        assert to_validator[0]["sender_id"] == staff.coordinator.id

    def test_create_is_audited(self, make_file, database):
        file_id = make_file()
        entries = file_audit(database, file_id)
        assert [e["action_type"] for e in entries] == ["create"]
        assert entries[0]["changes"]["status"] == {"before": None, "after": "validation"}

    def test_only_coordinator_or_admin_may_create(self, engine, staff):
        with pytest.raises(Forbidden):
            engine.create_file(
                staff.validator,
                {"property_address": "x", "owner_name": "y"},
                staff.validator.id, staff.key_in.id,
            )

    @pytest.mark.parametrize("name", ["property_address", "owner_name"])
    def test_required_attributes(self, engine, staff, name):
        attributes = {"property_address": "1 Lake View", "owner_name": "Meera"}
        attributes[name] = "  "
        with pytest.raises(InvalidTransition) as exc_info:
            engine.create_file(staff.coordinator, attributes, staff.validator.id, staff.key_in.id)
        assert exc_info.value.field == name

    def test_assignee_must_hold_matching_position(self, engine, staff):
        with pytest.raises(InvalidTransition) as exc_info:
            engine.create_file(
                staff.coordinator,
                {"property_address": "1 Lake View", "owner_name": "Meera"},
                validator_id=staff.key_in.id,
                key_in_operator_id=staff.key_in.id,
            )
        assert exc_info.value.field == "validator_id"

    def test_assignee_must_exist(self, engine, staff):
        with pytest.raises(InvalidTransition) as exc_info:
            engine.create_file(
                staff.coordinator,
                {"property_address": "1 Lake View", "owner_name": "Meera"},
                staff.validator.id, 9999,
            )
        assert exc_info.value.field == "key_in_operator_id"

    def test_unknown_master_data_rejected(self, engine, staff):
        with pytest.raises(InvalidTransition) as exc_info:
            engine.create_file(
                staff.coordinator,
                {"property_address": "1 Lake View", "owner_name": "Meera", "location_id": 404},
                staff.validator.id, staff.key_in.id,
            )
        assert exc_info.value.field == "location_id"

    def test_admin_may_name_the_coordinator(self, engine, staff):
        result = engine.create_file(
            staff.admin,
            {"property_address": "1 Lake View", "owner_name": "Meera",
             "coordinator_id": staff.other_coordinator.id},
            staff.validator.id, staff.key_in.id,
        )
        assert result.file["coordinator_id"] == staff.other_coordinator.id

    def test_coordinator_cannot_create_for_someone_else(self, engine, staff):
        result = engine.create_file(
            staff.coordinator,
            {"property_address": "1 Lake View", "owner_name": "Meera",
             "coordinator_id": staff.other_coordinator.id},
            staff.validator.id, staff.key_in.id,
        )
        assert result.file["coordinator_id"] == staff.coordinator.id


# =============================================================================
# Role Work
# =============================================================================


class TestSubmitValidation:
    """The assigned validator records evidence."""

    def test_only_assigned_validator_may_submit(self, make_file, engine, staff, evidence,
                                                 database, notifications_of):
        file_id = make_file()

        with pytest.raises(Forbidden):
            engine.submit_validation(file_id, staff.key_in, evidence)
        assert status_of(database, file_id) == FileStatus.VALIDATION

        result = engine.submit_validation(file_id, staff.validator, evidence)
        assert result.status == FileStatus.DATA_ENTRY
        assert result.previous_status == FileStatus.VALIDATION
        assert result.notifications_sent == 1
        ready = notifications_of(staff.key_in.id, "data_entry_ready")
        assert len(ready) == 1
        assert ready[0]["property_file_id"] == file_id

    def test_evidence_persisted_with_photos(self, make_file, engine, staff, evidence):
        file_id = make_file()
        result = engine.submit_validation(file_id, staff.validator, evidence)
        data = result.file["validation_data"]
        assert data["validated_by"] == staff.validator.id
        assert data["visit_date"] == "2024-03-14"
        assert [p["url"] for p in data["photos"]] == [
            "https://files.test/front.jpg",
            "https://files.test/side.jpg",
        ]

    def test_zero_photos_leaves_status_unchanged(self, make_file, engine, staff, evidence,
                                                 database):
        file_id = make_file()
        evidence["photos"] = []
        with pytest.raises(InvalidTransition) as exc_info:
            engine.submit_validation(file_id, staff.validator, evidence)
        assert exc_info.value.field == "photos"
        assert status_of(database, file_id) == FileStatus.VALIDATION
        assert engine.get_file(staff.admin, file_id)["validation_data"] is None

    def test_other_validator_forbidden(self, make_file, engine, staff, evidence):
        file_id = make_file()
        with pytest.raises(Forbidden):
            engine.submit_validation(file_id, staff.other_validator, evidence)

    def test_unknown_file(self, engine, staff, evidence):
        with pytest.raises(NotFound):
            engine.submit_validation(999, staff.validator, evidence)


class TestSubmitPropertyData:
    """The assigned key-in operator enters property data."""

    def test_moves_to_verification_and_broadcasts_when_unassigned(
        self, make_file, advance, engine, staff, property_data, notifications_of
    ):
        file_id = make_file()
        advance(file_id, FileStatus.DATA_ENTRY)
        result = engine.submit_property_data(file_id, staff.key_in, property_data)

        assert result.status == FileStatus.VERIFICATION
        assert result.file["property_data"]["revision"] == 1
        assert result.file["property_data"]["custom_data"] == {"bedrooms": 3.0, "bathrooms": 2.0}
        broadcast = [
            n for n in notifications_of(action_type="verification_ready")
            if n["recipient_id"] is None
        ]
        assert len(broadcast) == 1

    def test_assigned_officer_notified_directly(
        self, make_file, advance, engine, staff, property_data, notifications_of
    ):
        file_id = make_file(officer=True)
        advance(file_id, FileStatus.DATA_ENTRY)
        engine.submit_property_data(file_id, staff.key_in, property_data)
        assert len(notifications_of(staff.officer.id, "verification_ready")) == 1
        assert notifications_of(None, "verification_ready")[0]["recipient_id"] == staff.officer.id

    def test_wrong_state_is_invalid(self, make_file, engine, staff, property_data):
        file_id = make_file()
        with pytest.raises(InvalidTransition) as exc_info:
            engine.submit_property_data(file_id, staff.key_in, property_data)
        assert exc_info.value.field == "status"

    def test_other_key_in_forbidden(self, make_file, advance, engine, staff, property_data):
        file_id = make_file()
        advance(file_id, FileStatus.DATA_ENTRY)
        with pytest.raises(Forbidden):
            engine.submit_property_data(file_id, staff.other_key_in, property_data)

    def test_missing_custom_field_leaves_status(self, make_file, advance, engine, staff,
                                                property_data, database):
        file_id = make_file()
        advance(file_id, FileStatus.DATA_ENTRY)
        property_data["custom_data"] = {"bedrooms": 3}
        with pytest.raises(InvalidTransition) as exc_info:
            engine.submit_property_data(file_id, staff.key_in, property_data)
        assert exc_info.value.field == "custom_data.bathrooms"
        assert status_of(database, file_id) == FileStatus.DATA_ENTRY

    @pytest.mark.parametrize(
        "section,key,value",
        [("measurements", "area", "nan"), ("valuation", "estimated_value", "inf")],
    )
    def test_non_finite_number_leaves_status(self, make_file, advance, engine, staff,
                                             property_data, database, section, key, value):
        file_id = make_file()
        advance(file_id, FileStatus.DATA_ENTRY)
        property_data[section][key] = value
        with pytest.raises(InvalidTransition) as exc_info:
            engine.submit_property_data(file_id, staff.key_in, property_data)
        assert exc_info.value.field == key
        assert status_of(database, file_id) == FileStatus.DATA_ENTRY
        assert engine.get_file(staff.admin, file_id)["property_data"] is None


class TestVerification:
    """Verification officers approve or reject."""

    def test_approve_claims_file_and_notifies_coordinator(
        self, make_file, advance, engine, staff, notifications_of
    ):
        file_id = make_file()
        advance(file_id, FileStatus.VERIFICATION)
        result = engine.approve_verification(file_id, staff.other_officer, "All good")

        assert result.status == FileStatus.READY_TO_PRINT
        assert result.file["verification_officer_id"] == staff.other_officer.id
        assert result.file["verification_notes"] == "All good"
        ready = notifications_of(staff.coordinator.id, "ready_to_print")
        assert len(ready) == 1
        assert ready[0]["type"] == "success"

    def test_reject_requires_notes(self, make_file, advance, engine, staff, database):
        file_id = make_file()
        advance(file_id, FileStatus.VERIFICATION)
        with pytest.raises(InvalidTransition) as exc_info:
            engine.reject_verification(file_id, staff.officer, "")
        assert exc_info.value.field == "notes"
        assert status_of(database, file_id) == FileStatus.VERIFICATION

    def test_reject_returns_to_data_entry_and_notifies_key_in(
        self, make_file, advance, engine, staff, notifications_of
    ):
        file_id = make_file()
        advance(file_id, FileStatus.VERIFICATION)
        result = engine.reject_verification(file_id, staff.officer, "Area does not match deed")

        assert result.status == FileStatus.DATA_ENTRY
        assert result.file["verification_notes"] == "Area does not match deed"
        rejected = notifications_of(staff.key_in.id, "file_rejected")
        assert len(rejected) == 1
        assert "Area does not match deed" in rejected[0]["message"]
        assert rejected[0]["type"] == "warning"

    def test_reject_resubmit_approve_keeps_revisions(
        self, make_file, advance, engine, staff, property_data
    ):
        file_id = make_file()
        advance(file_id, FileStatus.VERIFICATION)
        engine.reject_verification(file_id, staff.officer, "Recheck valuation")

        property_data["valuation"]["estimated_value"] = 5200000
        resubmitted = engine.submit_property_data(file_id, staff.key_in, property_data)
        assert resubmitted.file["property_data_revisions"] == 2
        assert resubmitted.file["property_data"]["revision"] == 2
        assert resubmitted.file["property_data"]["valuation"]["estimated_value"] == 5200000

        result = engine.approve_verification(file_id, staff.officer)
        assert result.status == FileStatus.READY_TO_PRINT

    def test_claimed_file_cannot_be_decided_by_another_officer(
        self, make_file, advance, engine, staff, property_data
    ):
        file_id = make_file()
        advance(file_id, FileStatus.VERIFICATION)
        engine.reject_verification(file_id, staff.officer, "Recheck")
        engine.submit_property_data(file_id, staff.key_in, property_data)
        # officer is now recorded on the file
        with pytest.raises(Forbidden):
            engine.reject_verification(file_id, staff.other_officer, "Again")


class TestMarkPrinted:
    """Printing completes the file."""

    def test_officer_marks_printed(self, make_file, advance, engine, staff, notifications_of):
        file_id = make_file()
        advance(file_id, FileStatus.READY_TO_PRINT)
        result = engine.mark_printed(file_id, staff.officer)
        assert result.status == FileStatus.COMPLETED
        assert result.file["printed_at"] is not None
        assert len(notifications_of(staff.coordinator.id, "file_completed")) == 1

    def test_automated_completion(self, make_file, advance, engine, database):
        file_id = make_file()
        advance(file_id, FileStatus.READY_TO_PRINT)
        result = engine.auto_complete(file_id)
        assert result.status == FileStatus.COMPLETED
        last = file_audit(database, file_id)[-1]
        assert last["user_id"] is None
        assert last["changes"]["event"] == "mark_printed"

    def test_coordinator_cannot_mark_printed(self, make_file, advance, engine, staff):
        file_id = make_file()
        advance(file_id, FileStatus.READY_TO_PRINT)
        with pytest.raises(Forbidden):
            engine.mark_printed(file_id, staff.coordinator)


# =============================================================================
# Administrative Transitions
# =============================================================================


class TestHoldResume:
    """Hold remembers the status; resume restores it."""

    @pytest.mark.parametrize(
        "status",
        [FileStatus.VALIDATION, FileStatus.DATA_ENTRY,
         FileStatus.VERIFICATION, FileStatus.READY_TO_PRINT],
    )
    def test_hold_then_resume_restores_exact_status(self, make_file, advance, engine, staff,
                                                    status):
        file_id = make_file()
        advance(file_id, status)

        held = engine.hold(file_id, staff.coordinator, "Owner travelling")
        assert held.status == FileStatus.ON_HOLD
        assert held.file["held_from_status"] == status.value

        resumed = engine.resume(file_id, staff.coordinator)
        assert resumed.status == status
        assert resumed.previous_status == FileStatus.ON_HOLD
        assert resumed.file["held_from_status"] is None

    def test_hold_notifies_coordinator_and_current_assignee(
        self, make_file, advance, engine, staff, notifications_of
    ):
        file_id = make_file()
        advance(file_id, FileStatus.DATA_ENTRY)
        result = engine.hold(file_id, staff.admin, "Missing deed")
        assert result.notifications_sent == 2
        assert len(notifications_of(staff.coordinator.id, "file_on_hold")) == 1
        assert len(notifications_of(staff.key_in.id, "file_on_hold")) == 1
        assert notifications_of(staff.validator.id, "file_on_hold") == []

    def test_actor_is_not_notified_of_own_hold(self, make_file, engine, staff, notifications_of):
        file_id = make_file()
        engine.hold(file_id, staff.coordinator)
        assert notifications_of(staff.coordinator.id, "file_on_hold") == []
        assert len(notifications_of(staff.validator.id, "file_on_hold")) == 1

    def test_resume_notifies_assignee_of_restored_status(
        self, make_file, engine, staff, notifications_of
    ):
        file_id = make_file()
        engine.hold(file_id, staff.admin)
        engine.resume(file_id, staff.admin)
        assert len(notifications_of(staff.validator.id, "file_resumed")) == 1
        assert len(notifications_of(staff.coordinator.id, "file_resumed")) == 1

    def test_cannot_hold_twice(self, make_file, engine, staff):
        file_id = make_file()
        engine.hold(file_id, staff.admin)
        with pytest.raises(InvalidTransition):
            engine.hold(file_id, staff.admin)

    def test_work_events_blocked_while_on_hold(self, make_file, engine, staff, evidence):
        file_id = make_file()
        engine.hold(file_id, staff.coordinator)
        with pytest.raises(InvalidTransition):
            engine.submit_validation(file_id, staff.validator, evidence)

    def test_other_coordinator_cannot_hold(self, make_file, engine, staff, database):
        file_id = make_file()
        with pytest.raises(Forbidden):
            engine.hold(file_id, staff.other_coordinator)
        assert status_of(database, file_id) == FileStatus.VALIDATION


class TestCancel:
    """Cancel is available from every non-terminal status and is final."""

    @pytest.mark.parametrize(
        "status",
        [FileStatus.VALIDATION, FileStatus.DATA_ENTRY,
         FileStatus.VERIFICATION, FileStatus.READY_TO_PRINT],
    )
    def test_cancel_from_work_states(self, make_file, advance, engine, staff, status):
        file_id = make_file()
        advance(file_id, status)
        result = engine.cancel(file_id, staff.admin, "Loan withdrawn")
        assert result.status == FileStatus.CANCELLED
        assert result.previous_status == status

    def test_cancel_from_on_hold_clears_snapshot(self, make_file, engine, staff,
                                                 notifications_of):
        file_id = make_file()
        engine.hold(file_id, staff.coordinator)
        result = engine.cancel(file_id, staff.admin)
        assert result.status == FileStatus.CANCELLED
        assert result.file["held_from_status"] is None
        # the validator owned the file when it was held
        assert len(notifications_of(staff.validator.id, "file_cancelled")) == 1

    def test_cancel_from_pending(self, make_file, engine, staff, database):
        file_id = make_file()
        with database.session_scope() as session:
            session.get(PropertyFile, file_id).status = FileStatus.PENDING.value
        assert engine.cancel(file_id, staff.admin).status == FileStatus.CANCELLED

    def test_every_non_terminal_status_is_cancellable(self):
        for status in NON_TERMINAL_STATES:
            assert find_transition(status, WorkflowEvent.CANCEL)

    def test_nothing_succeeds_after_cancel(self, make_file, engine, staff, evidence):
        file_id = make_file()
        engine.cancel(file_id, staff.admin)
        attempts = [
            lambda: engine.submit_validation(file_id, staff.validator, evidence),
            lambda: engine.hold(file_id, staff.admin),
            lambda: engine.resume(file_id, staff.admin),
            lambda: engine.cancel(file_id, staff.admin),
            lambda: engine.mark_printed(file_id, staff.officer),
        ]
        for attempt in attempts:
            with pytest.raises(InvalidTransition):
                attempt()

    def test_coordinator_cannot_cancel(self, make_file, engine, staff):
        file_id = make_file()
        with pytest.raises(Forbidden):
            engine.cancel(file_id, staff.coordinator)


# =============================================================================
# Role Policy
# =============================================================================


class TestRolePolicy:
    """Every transition also needs the action granted to the actor's role."""

    def test_revoked_action_blocks_assigned_actor(self, make_file, engine, staff, evidence,
                                                  database, monkeypatch):
        file_id = make_file()
        monkeypatch.setitem(
            ROLE_PERMISSIONS, Position.VALIDATOR,
            ROLE_PERMISSIONS[Position.VALIDATOR] - {Action.FILE_SUBMIT_VALIDATION},
        )
        with pytest.raises(Forbidden) as exc_info:
            engine.submit_validation(file_id, staff.validator, evidence)
        assert "file.submit_validation" in exc_info.value.message
        assert status_of(database, file_id) == FileStatus.VALIDATION
        assert engine.get_file(staff.validator, file_id)["available_events"] == []

    def test_revoked_hold_blocks_coordinator(self, make_file, engine, staff, database,
                                             monkeypatch):
        file_id = make_file()
        monkeypatch.setitem(
            ROLE_PERMISSIONS, Position.COORDINATOR,
            ROLE_PERMISSIONS[Position.COORDINATOR] - {Action.FILE_HOLD},
        )
        with pytest.raises(Forbidden):
            engine.hold(file_id, staff.coordinator)
        assert status_of(database, file_id) == FileStatus.VALIDATION

    def test_illegal_event_reported_before_role(self, make_file, engine, staff):
        file_id = make_file()
        with pytest.raises(InvalidTransition) as exc_info:
            engine.approve_verification(file_id, staff.validator)
        assert exc_info.value.field == "status"

    def test_every_event_requires_an_action(self):
        assert set(EVENT_ACTIONS) == set(WorkflowEvent)


# =============================================================================
# Expected Status, Audit and Notification Failures
# =============================================================================


class TestExpectedStatus:
    """Stale callers are told to reload."""

    def test_stale_expected_status_rejected(self, make_file, advance, engine, staff, database):
        file_id = make_file()
        advance(file_id, FileStatus.DATA_ENTRY)
        with pytest.raises(ConcurrentModification) as exc_info:
            engine.hold(file_id, staff.admin, expected_status="validation")
        assert exc_info.value.retryable
        assert status_of(database, file_id) == FileStatus.DATA_ENTRY

    def test_matching_expected_status_accepted(self, make_file, engine, staff, evidence):
        file_id = make_file()
        result = engine.submit_validation(
            file_id, staff.validator, evidence, expected_status=FileStatus.VALIDATION
        )
        assert result.status == FileStatus.DATA_ENTRY

    def test_unknown_expected_status_is_invalid(self, make_file, engine, staff):
        file_id = make_file()
        with pytest.raises(InvalidTransition) as exc_info:
            engine.hold(file_id, staff.admin, expected_status="archived")
        assert exc_info.value.field == "expected_status"


class TestAuditAndHistory:
    """Each transition leaves one audit entry and a legal status history."""

    def test_one_audit_entry_per_transition(self, make_file, advance, engine, staff, database):
        file_id = make_file()
        advance(file_id, FileStatus.COMPLETED)
        entries = file_audit(database, file_id)
        assert [e["action_type"] for e in entries] == ["create"] + ["update"] * 4
        assert [e["changes"]["event"] for e in entries[1:]] == [
            "submit_validation", "submit_property_data", "approve", "mark_printed",
        ]

    def test_recorded_history_is_a_chain_of_legal_steps(self, make_file, advance, engine, staff,
                                                        database):
        file_id = make_file()
        advance(file_id, FileStatus.VERIFICATION)
        engine.hold(file_id, staff.coordinator)
        engine.resume(file_id, staff.admin)
        engine.reject_verification(file_id, staff.officer, "Fix")
        engine.cancel(file_id, staff.admin)

        steps = [e["changes"]["status"] for e in file_audit(database, file_id)[1:]]
        for step in steps:
            assert is_legal_step(FileStatus(step["before"]), FileStatus(step["after"]))
        for earlier, later in zip(steps, steps[1:]):
            assert earlier["after"] == later["before"]

    def test_rejected_attempt_leaves_no_audit_entry(self, make_file, engine, staff, evidence,
                                                    database):
        file_id = make_file()
        with pytest.raises(Forbidden):
            engine.submit_validation(file_id, staff.other_validator, evidence)
        assert len(file_audit(database, file_id)) == 1

    def test_client_metadata_recorded(self, make_file, engine, staff, evidence, database):
        file_id = make_file()
        engine.submit_validation(
            file_id, staff.validator, evidence,
            client=ClientMeta(ip_address="10.0.0.7", user_agent="field-app/2.1"),
        )
        last = file_audit(database, file_id)[-1]
        assert last["ip_address"] == "10.0.0.7"
        assert last["user_agent"] == "field-app/2.1"


class TestNotificationFailures:
    """Sink failures become warnings; the transition stands."""

    def test_failing_sink_does_not_roll_back(self, database, staff, evidence, caplog):
        engine = WorkflowEngine(database, sink=FailingSink())
        created = engine.create_file(
            staff.coordinator,
            {"property_address": "1 Lake View", "owner_name": "Meera"},
            staff.validator.id, staff.key_in.id,
        )
        assert created.notifications_sent == 0
        assert len(created.warnings) == 2

        file_id = created.file["id"]
        result = engine.submit_validation(file_id, staff.validator, evidence)
        assert result.status == FileStatus.DATA_ENTRY
        assert status_of(database, file_id) == FileStatus.DATA_ENTRY
        assert result.warnings == [
            f"Notification 'data_entry_ready' to recipient {staff.key_in.id} "
            "could not be delivered"
        ]
        assert "Failed to enqueue" in caplog.text

    def test_recording_sink_receives_messages(self, database, staff, evidence):
        sink = RecordingSink()
        engine = WorkflowEngine(database, sink=sink)
        created = engine.create_file(
            staff.coordinator,
            {"property_address": "1 Lake View", "owner_name": "Meera"},
            staff.validator.id, staff.key_in.id,
        )
        engine.submit_validation(created.file["id"], staff.validator, evidence)
        assert sink.action_types() == ["file_assigned", "file_assigned", "data_entry_ready"]


# =============================================================================
# Reads and Attachments
# =============================================================================


class TestReads:
    """Visibility follows role policy."""

    def test_file_detail_lists_available_events(self, make_file, engine, staff):
        file_id = make_file()
        detail = engine.get_file(staff.validator, file_id)
        assert detail["available_events"] == ["submit_validation"]

    def test_invisible_file_is_not_found(self, make_file, engine, staff):
        file_id = make_file()
        with pytest.raises(NotFound):
            engine.get_file(staff.other_validator, file_id)
        with pytest.raises(NotFound):
            engine.get_file(staff.other_coordinator, file_id)

    def test_officers_see_unassigned_files_awaiting_verification(
        self, make_file, advance, engine, staff
    ):
        waiting = make_file()
        make_file()
        advance(waiting, FileStatus.VERIFICATION)

        listing = engine.list_files(staff.other_officer)
        assert [f["id"] for f in listing["files"]] == [waiting]

    def test_list_filters_by_status(self, make_file, advance, engine, staff):
        first = make_file()
        make_file()
        advance(first, FileStatus.DATA_ENTRY)
        listing = engine.list_files(staff.admin, status="data-entry")
        assert listing["count"] == 1
        assert listing["files"][0]["id"] == first

    def test_list_rejects_unknown_status(self, engine, staff):
        with pytest.raises(InvalidTransition) as exc_info:
            engine.list_files(staff.admin, status="archived")
        assert exc_info.value.field == "status"


class TestDocuments:
    """Document locators attach to visible, open files."""

    def test_validator_attaches_document(self, make_file, engine, staff):
        file_id = make_file()
        document = engine.add_document(
            staff.validator, file_id, "Sale deed", "https://files.test/deed.pdf",
            document_type="deed", file_size=20480, mime_type="application/pdf",
        )
        assert document["uploaded_by"] == staff.validator.id
        assert engine.get_file(staff.admin, file_id)["documents"][0]["name"] == "Sale deed"

    def test_key_in_cannot_attach(self, make_file, engine, staff):
        file_id = make_file()
        with pytest.raises(Forbidden):
            engine.add_document(staff.key_in, file_id, "Deed", "https://files.test/deed.pdf")

    def test_terminal_file_rejects_documents(self, make_file, engine, staff):
        file_id = make_file()
        engine.cancel(file_id, staff.admin)
        with pytest.raises(InvalidTransition):
            engine.add_document(staff.coordinator, file_id, "Deed", "https://files.test/d.pdf")
