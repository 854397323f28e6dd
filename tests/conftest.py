"""Pytest configuration and fixtures."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from core.identity.auth import hash_password
from core.schema import FileStatus
from core.store.database import Database
from core.store.models import Bank, Location, Notification, PropertyType, User
from core.workflow import WorkflowEngine
from utils.config import Config
from web.app import create_app

PASSWORD = "correct-horse-battery"

# Hashing is deliberately slow, so every seeded account shares one hash
PASSWORD_HASH = hash_password(PASSWORD)

STAFF = (
    ("admin", "Asha Admin", "admin"),
    ("coordinator", "Chitra Coordinator", "coordinator"),
    ("other_coordinator", "Charan Coordinator", "coordinator"),
    ("validator", "Vikram Validator", "validator"),
    ("other_validator", "Vani Validator", "validator"),
    ("key_in", "Kiran Keyin", "key-in"),
    ("other_key_in", "Kavya Keyin", "key-in"),
    ("officer", "Omkar Officer", "verification"),
    ("other_officer", "Ojas Officer", "verification"),
)


def email_for(name: str) -> str:
    return f"{name.replace('_', '.')}@propertyflow.test"


# =============================================================================
# Record Store
# =============================================================================


@pytest.fixture
def database():
    """Fresh in-memory database for each test."""
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def staff(database):
    """One active account per role (two for the assignable roles), as actors."""
    actors = {}
    with database.session_scope() as session:
        for name, full_name, position in STAFF:
            user = User(
                full_name=full_name,
                email=email_for(name),
                mobile_number="9800000000",
                position=position,
                password_hash=PASSWORD_HASH,
                is_active=True,
            )
            session.add(user)
            session.flush()
            actors[name] = user.to_actor()
    return SimpleNamespace(**actors)


@pytest.fixture
def master_data(database):
    """One bank, property type and location."""
    with database.session_scope() as session:
        bank = Bank(name="State Bank", branch="MG Road")
        property_type = PropertyType(category="Residential", name="Apartment")
        location = Location(state="Karnataka", district="Bengaluru Urban", city="Bengaluru")
        session.add_all([bank, property_type, location])
        session.flush()
        return SimpleNamespace(
            bank_id=bank.id,
            property_type_id=property_type.id,
            location_id=location.id,
        )


# =============================================================================
# Workflow
# =============================================================================


class RecordingSink:
    """Notification sink that keeps every delivery in memory."""

    def __init__(self):
        self.deliveries = []

    def enqueue(self, recipient_id, file_id, message):
        self.deliveries.append((recipient_id, file_id, message))

    def action_types(self) -> list[str]:
        return [m.action_type for _, _, m in self.deliveries]


class FailingSink:
    """Notification sink whose backing store is always down."""

    def enqueue(self, recipient_id, file_id, message):
        raise ConnectionError("notification store unreachable")


@pytest.fixture
def engine(database):
    return WorkflowEngine(database)


@pytest.fixture
def evidence():
    """Complete site evidence for submit_validation."""
    return {
        "photos": [
            {"url": "https://files.test/front.jpg", "photo_type": "front", "caption": "Front"},
            "https://files.test/side.jpg",
        ],
        "visit_date": "2024-03-14",
        "property_type": "Apartment",
        "gps_latitude": 12.9716,
        "gps_longitude": 77.5946,
        "gps_accuracy": 8.5,
        "property_condition": "Good",
        "access_notes": "Gate code 1234",
    }


@pytest.fixture
def property_data():
    """Complete property data for submit_property_data."""
    return {
        "measurements": {"length": 40, "width": 30, "area": 1200, "built_up_area": 1100},
        "construction": {"type": "RCC", "material": "Brick", "year_built": 2010, "floors": 2},
        "valuation": {"estimated_value": 4500000, "market_rate": 3750, "notes": "Corner plot"},
        "data_source": "Site survey",
        "format_id": "residential",
        "custom_data": {"bedrooms": 3, "bathrooms": "2"},
    }


@pytest.fixture
def make_file(engine, staff, master_data):
    """Create a file assigned to the default validator and key-in operator."""

    def _make(officer=False, **attributes):
        values = {
            "property_address": "12 Residency Road, Bengaluru",
            "owner_name": "Ravi Kumar",
            "bank_id": master_data.bank_id,
            "property_type_id": master_data.property_type_id,
            "location_id": master_data.location_id,
        }
        values.update(attributes)
        result = engine.create_file(
            staff.coordinator,
            values,
            validator_id=staff.validator.id,
            key_in_operator_id=staff.key_in.id,
            verification_officer_id=staff.officer.id if officer else None,
        )
        return result.file["id"]

    return _make


@pytest.fixture
def advance(engine, staff, evidence, property_data):
    """Drive a file along the happy path until it reaches ``target``."""
    order = [
        FileStatus.VALIDATION,
        FileStatus.DATA_ENTRY,
        FileStatus.VERIFICATION,
        FileStatus.READY_TO_PRINT,
        FileStatus.COMPLETED,
    ]
    steps = {
        FileStatus.VALIDATION: lambda fid: engine.submit_validation(fid, staff.validator, evidence),
        FileStatus.DATA_ENTRY: lambda fid: engine.submit_property_data(
            fid, staff.key_in, property_data
        ),
        FileStatus.VERIFICATION: lambda fid: engine.approve_verification(fid, staff.officer),
        FileStatus.READY_TO_PRINT: lambda fid: engine.mark_printed(fid, staff.officer),
    }

    def _advance(file_id: int, target: FileStatus) -> None:
        for status in order[: order.index(target)]:
            steps[status](file_id)

    return _advance


def notifications(database, recipient_id=None, action_type=None) -> list[dict]:
    """Notification rows, optionally filtered."""
    with database.session_scope() as session:
        query = session.query(Notification)
        if recipient_id is not None:
            query = query.filter(Notification.recipient_id == recipient_id)
        if action_type is not None:
            query = query.filter(Notification.action_type == action_type)
        return [n.to_dict() for n in query.order_by(Notification.id)]


@pytest.fixture
def notifications_of(database):
    """Look up stored notifications by recipient and action type."""

    def _lookup(recipient_id=None, action_type=None):
        return notifications(database, recipient_id, action_type)

    return _lookup


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def config(tmp_path):
    return Config(
        database_url="sqlite://",
        token_secret="test-secret",
        allowed_origins=[],
        reports_dir=str(tmp_path / "reports"),
        admin_email="",
        admin_password="",
    )


@pytest.fixture
def client(config, database, staff, master_data):
    app = create_app(config, database)
    return TestClient(app)


@pytest.fixture
def login(client):
    """Log in a seeded account and return its Authorization header."""

    def _login(name: str) -> dict:
        response = client.post(
            "/api/auth/login", json={"email": email_for(name), "password": PASSWORD}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login
