"""
Record Store Models - SQLAlchemy declarative tables for PropertyFlow.

Explicit Column definitions on a classic ``declarative_base``. Status and
position columns store the enum string values and are constrained at the
database level, so a row can never hold a value outside the enumeration.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from core.schema import Actor, FileStatus, Position

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: Optional[datetime | date]) -> Optional[str]:
    return value.isoformat() if value else None


_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in FileStatus)
_POSITION_VALUES = ", ".join(f"'{p.value}'" for p in Position)


# ──────────────────────────────────────────────
# USERS
# ──────────────────────────────────────────────
class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(f"position IN ({_POSITION_VALUES})", name="ck_users_position"),
    )

    id              = Column(Integer, primary_key=True)
    full_name       = Column(String(255), nullable=False)
    email           = Column(String(255), nullable=False, unique=True)
    mobile_number   = Column(String(32), nullable=False, default="")
    position        = Column(String(20), nullable=False)
    department      = Column(String(255))
    employee_id     = Column(String(64), unique=True)
    password_hash   = Column(String(255))
    is_active       = Column(Boolean, nullable=False, default=True)
    last_login_ip   = Column(String(64))
    created_at      = Column(DateTime, nullable=False, default=utcnow)
    updated_at      = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def position_enum(self) -> Position:
        return Position(self.position)

    def to_actor(self) -> Actor:
        """Build the explicit identity context for workflow operations."""
        return Actor(id=self.id, full_name=self.full_name, position=self.position_enum)

    def to_public_dict(self) -> dict[str, Any]:
        """Serialise without the password hash."""
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "mobile_number": self.mobile_number,
            "position": self.position,
            "department": self.department,
            "employee_id": self.employee_id,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ──────────────────────────────────────────────
# MASTER DATA
# ──────────────────────────────────────────────
class Bank(Base):
    __tablename__ = "banks"

    id      = Column(Integer, primary_key=True)
    name    = Column(String(255), nullable=False)
    branch  = Column(String(255), nullable=False)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "branch": self.branch}


class PropertyType(Base):
    __tablename__ = "property_types"

    id          = Column(Integer, primary_key=True)
    category    = Column(String(255), nullable=False)
    name        = Column(String(255), nullable=False)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "category": self.category, "name": self.name}


class Location(Base):
    __tablename__ = "locations"

    id          = Column(Integer, primary_key=True)
    state       = Column(String(255), nullable=False)
    district    = Column(String(255), nullable=False)
    city        = Column(String(255), nullable=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state,
            "district": self.district,
            "city": self.city,
        }


class SystemConfiguration(Base):
    __tablename__ = "system_configurations"
    __table_args__ = (UniqueConstraint("config_type", "key", name="uq_config_type_key"),)

    id          = Column(Integer, primary_key=True)
    config_type = Column(String(100), nullable=False)
    key         = Column(String(255), nullable=False)
    value       = Column(JSON)
    created_by  = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    created_at  = Column(DateTime, nullable=False, default=utcnow)
    updated_at  = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "config_type": self.config_type,
            "key": self.key,
            "value": self.value,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ──────────────────────────────────────────────
# PROPERTY FILES
# ──────────────────────────────────────────────
class PropertyFile(Base):
    __tablename__ = "property_files"
    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_property_files_status"),
        CheckConstraint(
            f"held_from_status IS NULL OR held_from_status IN ({_STATUS_VALUES})",
            name="ck_property_files_held_from",
        ),
        Index("ix_property_files_status", "status"),
    )

    id                      = Column(Integer, primary_key=True)
    file_code               = Column(String(32), nullable=False, unique=True)
    bank_id                 = Column(Integer, ForeignKey("banks.id"))
    property_type_id        = Column(Integer, ForeignKey("property_types.id"))
    location_id             = Column(Integer, ForeignKey("locations.id"))
    property_address        = Column(Text, nullable=False)
    owner_name              = Column(String(255), nullable=False)
    owner_contact           = Column(String(64))
    village                 = Column(String(255))

    coordinator_id          = Column(Integer, ForeignKey("users.id"), nullable=False)
    validator_id            = Column(Integer, ForeignKey("users.id"))
    key_in_operator_id      = Column(Integer, ForeignKey("users.id"))
    verification_officer_id = Column(Integer, ForeignKey("users.id"))

    status                  = Column(String(20), nullable=False)
    held_from_status        = Column(String(20))
    verification_notes      = Column(Text)
    coordinator_comments    = Column(Text)
    printed_at              = Column(DateTime)
    created_at              = Column(DateTime, nullable=False, default=utcnow)
    updated_at              = Column(DateTime, nullable=False, default=utcnow)

    bank            = relationship("Bank")
    property_type   = relationship("PropertyType")
    location        = relationship("Location")
    coordinator     = relationship("User", foreign_keys=[coordinator_id])
    validator       = relationship("User", foreign_keys=[validator_id])
    key_in_operator = relationship("User", foreign_keys=[key_in_operator_id])
    verification_officer = relationship("User", foreign_keys=[verification_officer_id])

    validation_data = relationship(
        "ValidationData", back_populates="property_file", uselist=False,
        cascade="all, delete-orphan",
    )
    property_data_revisions = relationship(
        "PropertyData", back_populates="property_file",
        order_by="PropertyData.revision", cascade="all, delete-orphan",
    )
    documents = relationship(
        "Document", back_populates="property_file", cascade="all, delete-orphan",
    )

    @property
    def status_enum(self) -> FileStatus:
        return FileStatus(self.status)

    @property
    def held_from_enum(self) -> Optional[FileStatus]:
        return FileStatus(self.held_from_status) if self.held_from_status else None

    @property
    def property_data(self) -> Optional["PropertyData"]:
        """Latest property-data revision, the authoritative one."""
        if not self.property_data_revisions:
            return None
        return self.property_data_revisions[-1]

    def to_summary_dict(self) -> dict[str, Any]:
        """Serialise the fields shown in lists and dashboards."""
        return {
            "id": self.id,
            "file_code": self.file_code,
            "bank": self.bank.to_dict() if self.bank else None,
            "property_type": self.property_type.to_dict() if self.property_type else None,
            "location": self.location.to_dict() if self.location else None,
            "property_address": self.property_address,
            "owner_name": self.owner_name,
            "owner_contact": self.owner_contact,
            "village": self.village,
            "coordinator_id": self.coordinator_id,
            "validator_id": self.validator_id,
            "key_in_operator_id": self.key_in_operator_id,
            "verification_officer_id": self.verification_officer_id,
            "status": self.status,
            "held_from_status": self.held_from_status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialise the file with its accumulated payloads."""
        data = self.to_summary_dict()
        data.update({
            "verification_notes": self.verification_notes,
            "coordinator_comments": self.coordinator_comments,
            "printed_at": _iso(self.printed_at),
            "validation_data": self.validation_data.to_dict() if self.validation_data else None,
            "property_data": self.property_data.to_dict() if self.property_data else None,
            "property_data_revisions": len(self.property_data_revisions),
            "documents": [d.to_dict() for d in self.documents],
        })
        return data


class ValidationData(Base):
    __tablename__ = "validation_data"

    id                  = Column(Integer, primary_key=True)
    property_file_id    = Column(
        Integer, ForeignKey("property_files.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    gps_latitude        = Column(Float)
    gps_longitude       = Column(Float)
    gps_accuracy        = Column(Float)
    property_condition  = Column(String(255))
    access_notes        = Column(Text)
    visit_date          = Column(Date, nullable=False)
    visit_time          = Column(String(16))
    weather_conditions  = Column(String(255))
    property_type       = Column(String(255), nullable=False)
    extended_data       = Column(JSON, nullable=False, default=dict)
    validated_by        = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at          = Column(DateTime, nullable=False, default=utcnow)

    property_file = relationship("PropertyFile", back_populates="validation_data")
    photos = relationship(
        "ValidationPhoto", back_populates="validation_data",
        order_by="ValidationPhoto.id", cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "gps_latitude": self.gps_latitude,
            "gps_longitude": self.gps_longitude,
            "gps_accuracy": self.gps_accuracy,
            "property_condition": self.property_condition,
            "access_notes": self.access_notes,
            "visit_date": _iso(self.visit_date),
            "visit_time": self.visit_time,
            "weather_conditions": self.weather_conditions,
            "property_type": self.property_type,
            "extended_data": self.extended_data or {},
            "validated_by": self.validated_by,
            "created_at": _iso(self.created_at),
            "photos": [p.to_dict() for p in self.photos],
        }


class ValidationPhoto(Base):
    __tablename__ = "validation_photos"

    id                  = Column(Integer, primary_key=True)
    validation_data_id  = Column(
        Integer, ForeignKey("validation_data.id", ondelete="CASCADE"), nullable=False,
    )
    photo_url           = Column(String(1024), nullable=False)
    photo_type          = Column(String(64), nullable=False, default="other")
    caption             = Column(String(1024), nullable=False, default="")

    validation_data = relationship("ValidationData", back_populates="photos")

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.photo_url, "photo_type": self.photo_type, "caption": self.caption}


class PropertyData(Base):
    __tablename__ = "property_data"
    __table_args__ = (
        UniqueConstraint("property_file_id", "revision", name="uq_property_data_revision"),
    )

    id                      = Column(Integer, primary_key=True)
    property_file_id        = Column(
        Integer, ForeignKey("property_files.id", ondelete="CASCADE"), nullable=False,
    )
    revision                = Column(Integer, nullable=False, default=1)

    length                  = Column(Float)
    width                   = Column(Float)
    area                    = Column(Float, nullable=False)
    built_up_area           = Column(Float)
    carpet_area             = Column(Float)

    construction_type       = Column(String(255), nullable=False)
    construction_material   = Column(String(255))
    construction_condition  = Column(String(255))
    year_built              = Column(Integer)
    floors                  = Column(Integer)

    estimated_value         = Column(Float, nullable=False)
    market_rate             = Column(Float)
    government_rate         = Column(Float)
    valuation_notes         = Column(Text)

    data_source             = Column(String(255))
    format_id               = Column(String(64))
    custom_data             = Column(JSON, nullable=False, default=dict)
    entered_by              = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at              = Column(DateTime, nullable=False, default=utcnow)

    property_file = relationship("PropertyFile", back_populates="property_data_revisions")

    def to_dict(self) -> dict[str, Any]:
        return {
            "revision": self.revision,
            "measurements": {
                "length": self.length,
                "width": self.width,
                "area": self.area,
                "built_up_area": self.built_up_area,
                "carpet_area": self.carpet_area,
            },
            "construction": {
                "type": self.construction_type,
                "material": self.construction_material,
                "condition": self.construction_condition,
                "year_built": self.year_built,
                "floors": self.floors,
            },
            "valuation": {
                "estimated_value": self.estimated_value,
                "market_rate": self.market_rate,
                "government_rate": self.government_rate,
                "notes": self.valuation_notes,
            },
            "data_source": self.data_source,
            "format_id": self.format_id,
            "custom_data": self.custom_data or {},
            "entered_by": self.entered_by,
            "created_at": _iso(self.created_at),
        }


class Document(Base):
    __tablename__ = "documents"

    id                  = Column(Integer, primary_key=True)
    property_file_id    = Column(
        Integer, ForeignKey("property_files.id", ondelete="CASCADE"), nullable=False,
    )
    name                = Column(String(255), nullable=False)
    document_type       = Column(String(64), nullable=False, default="other")
    file_url            = Column(String(1024), nullable=False)
    file_size           = Column(Integer)
    mime_type           = Column(String(128))
    uploaded_by         = Column(Integer, ForeignKey("users.id"), nullable=False)
    uploaded_at         = Column(DateTime, nullable=False, default=utcnow)

    property_file = relationship("PropertyFile", back_populates="documents")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "document_type": self.document_type,
            "file_url": self.file_url,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": _iso(self.uploaded_at),
        }


# ──────────────────────────────────────────────
# NOTIFICATIONS & AUDIT
# ──────────────────────────────────────────────
class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_recipient", "recipient_id"),)

    id                  = Column(Integer, primary_key=True)
    recipient_id        = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"))
    sender_id           = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    type                = Column(String(16), nullable=False, default="info")
    title               = Column(String(255), nullable=False)
    message             = Column(Text, nullable=False)
    property_file_id    = Column(Integer, ForeignKey("property_files.id", ondelete="CASCADE"))
    action_type         = Column(String(64))
    is_read             = Column(Boolean, nullable=False, default=False)
    read_at             = Column(DateTime)
    created_at          = Column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "sender_id": self.sender_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "property_file_id": self.property_file_id,
            "action_type": self.action_type,
            "is_read": self.is_read,
            "read_at": _iso(self.read_at),
            "created_at": _iso(self.created_at),
        }


class AuditLogEntry(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_logs_object", "model_name", "object_id"),)

    id          = Column(Integer, primary_key=True)
    user_id     = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    action_type = Column(String(16), nullable=False)
    model_name  = Column(String(64), nullable=False)
    object_id   = Column(String(64), nullable=False)
    object_repr = Column(String(255), nullable=False, default="")
    changes     = Column(JSON)
    ip_address  = Column(String(64))
    user_agent  = Column(String(512))
    created_at  = Column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action_type": self.action_type,
            "model_name": self.model_name,
            "object_id": self.object_id,
            "object_repr": self.object_repr,
            "changes": self.changes,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": _iso(self.created_at),
        }
