"""
Record Store Repositories - Queries and conditional writes.

Repositories operate on a caller-supplied session so that a workflow
transition, its payload rows and its audit entry share one transaction.
"""

from __future__ import annotations

from typing import Any, Optional, Type

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from core.exceptions import NotFound
from core.schema import FileStatus, Position, format_file_code
from core.store.models import (
    Bank,
    Location,
    PropertyFile,
    PropertyType,
    SystemConfiguration,
    User,
    utcnow,
)


# =============================================================================
# Property Files
# =============================================================================


class FileRepository:
    """Reads and conditional status writes for property files."""

    @staticmethod
    def get(session: Session, file_id: int) -> PropertyFile:
        """
        Get a property file by ID.

        Raises:
            NotFound: If no file has this ID
        """
        record = session.get(PropertyFile, file_id)
        if record is None:
            raise NotFound(f"Property file {file_id} not found")
        return record

    @staticmethod
    def get_visible(
        session: Session,
        file_id: int,
        visibility: Optional[ColumnElement],
    ) -> PropertyFile:
        """Get a file only if it is inside the caller's visible set."""
        stmt = select(PropertyFile).where(PropertyFile.id == file_id)
        if visibility is not None:
            stmt = stmt.where(visibility)
        record = session.scalars(stmt).first()
        if record is None:
            raise NotFound(f"Property file {file_id} not found")
        return record

    @staticmethod
    def next_file_code(session: Session, prefix: str) -> str:
        """Next sequential human-readable file code."""
        current = session.scalar(select(func.max(PropertyFile.id))) or 0
        return format_file_code(prefix, current + 1)

    @staticmethod
    def conditional_update(
        session: Session,
        file_id: int,
        expected: FileStatus,
        values: dict[str, Any],
    ) -> bool:
        """
        Update a file only if its persisted status still equals ``expected``.

        The status check and the write are one SQL statement, so two writers
        racing from the same status cannot both succeed.

        Args:
            session: Active session (transaction)
            file_id: Property file ID
            expected: Status the caller read before deciding the transition
            values: Column values to write, including the new ``status``

        Returns:
            True if exactly one row was updated, False if the status moved on
        """
        values = dict(values)
        values.setdefault("updated_at", utcnow())
        stmt = (
            update(PropertyFile)
            .where(PropertyFile.id == file_id)
            .where(PropertyFile.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    def list(
        session: Session,
        visibility: Optional[ColumnElement] = None,
        status: Optional[FileStatus] = None,
        page: int = 1,
        page_size: int = 25,
    ) -> tuple[list[PropertyFile], int]:
        """List files newest first, returning the page and the total count."""
        stmt = select(PropertyFile)
        count_stmt = select(func.count(PropertyFile.id))
        if visibility is not None:
            stmt = stmt.where(visibility)
            count_stmt = count_stmt.where(visibility)
        if status is not None:
            stmt = stmt.where(PropertyFile.status == status.value)
            count_stmt = count_stmt.where(PropertyFile.status == status.value)

        stmt = (
            stmt.order_by(PropertyFile.created_at.desc(), PropertyFile.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        return list(session.scalars(stmt)), session.scalar(count_stmt) or 0

    @staticmethod
    def count_by_status(
        session: Session,
        visibility: Optional[ColumnElement] = None,
    ) -> dict[str, int]:
        """Get count of files by status."""
        stmt = select(PropertyFile.status, func.count(PropertyFile.id)).group_by(
            PropertyFile.status
        )
        if visibility is not None:
            stmt = stmt.where(visibility)
        return {status: count for status, count in session.execute(stmt)}

    @staticmethod
    def count_referencing_user(session: Session, user_id: int) -> int:
        """Number of files that reference a user in any role."""
        stmt = select(func.count(PropertyFile.id)).where(
            or_(
                PropertyFile.coordinator_id == user_id,
                PropertyFile.validator_id == user_id,
                PropertyFile.key_in_operator_id == user_id,
                PropertyFile.verification_officer_id == user_id,
            )
        )
        return session.scalar(stmt) or 0


# =============================================================================
# Users
# =============================================================================


class UserRepository:
    """Lookups for user accounts."""

    @staticmethod
    def get(session: Session, user_id: int) -> User:
        """
        Get a user by ID.

        Raises:
            NotFound: If no user has this ID
        """
        user = session.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    @staticmethod
    def get_active(session: Session, user_id: int) -> Optional[User]:
        """Get a user only if the account is active."""
        user = session.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return user

    @staticmethod
    def get_by_email(session: Session, email: str) -> Optional[User]:
        normalised = email.strip().lower()
        return session.scalars(select(User).where(User.email == normalised)).first()

    @staticmethod
    def list(
        session: Session,
        position: Optional[Position] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 25,
    ) -> tuple[list[User], int]:
        """List users newest first with optional position filter and search."""
        conditions = []
        if position is not None:
            conditions.append(User.position == position.value)
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(
                    User.full_name.ilike(pattern),
                    User.email.ilike(pattern),
                    User.employee_id.ilike(pattern),
                )
            )

        stmt = select(User).where(*conditions).order_by(User.created_at.desc(), User.id.desc())
        count_stmt = select(func.count(User.id)).where(*conditions)
        stmt = stmt.limit(page_size).offset((page - 1) * page_size)
        return list(session.scalars(stmt)), session.scalar(count_stmt) or 0

    @staticmethod
    def list_active_by_position(session: Session, position: Position) -> list[User]:
        stmt = (
            select(User)
            .where(User.position == position.value, User.is_active.is_(True))
            .order_by(User.full_name)
        )
        return list(session.scalars(stmt))

    @staticmethod
    def count(session: Session) -> int:
        return session.scalar(select(func.count(User.id))) or 0


# =============================================================================
# Master Data
# =============================================================================

MASTER_DATA_MODELS: dict[str, Type] = {
    "bank": Bank,
    "property_type": PropertyType,
    "location": Location,
    "config": SystemConfiguration,
}

# Sort order for list views
MASTER_DATA_ORDER: dict[str, tuple] = {
    "bank": (Bank.name, Bank.branch),
    "property_type": (PropertyType.category, PropertyType.name),
    "location": (Location.state, Location.district, Location.city),
    "config": (SystemConfiguration.config_type, SystemConfiguration.key),
}

# Property file column referencing each kind
MASTER_DATA_FILE_COLUMNS: dict[str, Any] = {
    "bank": PropertyFile.bank_id,
    "property_type": PropertyFile.property_type_id,
    "location": PropertyFile.location_id,
}


class MasterDataRepository:
    """Generic lookups over the master-data tables."""

    @staticmethod
    def model_for(kind: str) -> Type:
        try:
            return MASTER_DATA_MODELS[kind]
        except KeyError:
            raise NotFound(f"Unknown master data kind: {kind}") from None

    @classmethod
    def get(cls, session: Session, kind: str, record_id: int):
        model = cls.model_for(kind)
        record = session.get(model, record_id)
        if record is None:
            raise NotFound(f"{model.__name__} {record_id} not found")
        return record

    @classmethod
    def list(cls, session: Session, kind: str) -> list:
        model = cls.model_for(kind)
        return list(session.scalars(select(model).order_by(*MASTER_DATA_ORDER[kind])))

    @staticmethod
    def count_referencing_files(session: Session, kind: str, record_id: int) -> int:
        """Number of property files pointing at a master-data record."""
        column = MASTER_DATA_FILE_COLUMNS.get(kind)
        if column is None:
            return 0
        return session.scalar(select(func.count(PropertyFile.id)).where(column == record_id)) or 0
