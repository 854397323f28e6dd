"""
User Management - Account administration with an audit entry per mutation.

Admins manage every account. Any user may update the contact details of
their own account but never their own position or active flag.
"""

from __future__ import annotations

import logging
from typing import Any, Final, Optional

from core.exceptions import Forbidden, InvalidTransition
from core.identity.auth import hash_password
from core.identity.policy import Action, can, require_permission
from core.schema import Actor, AuditAction, Position
from core.store.database import Database
from core.store.models import User
from core.store.repository import FileRepository, UserRepository
from core.workflow.audit import AuditTrail, ClientMeta

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH: Final[int] = 8

# Fields a user may change on their own account
SELF_EDITABLE_FIELDS: Final[frozenset[str]] = frozenset(
    {"full_name", "mobile_number", "department"}
)

# Fields only an admin may change
ADMIN_EDITABLE_FIELDS: Final[frozenset[str]] = SELF_EDITABLE_FIELDS | {
    "email",
    "employee_id",
    "position",
    "is_active",
}

# Columns that may be changed but never cleared
REQUIRED_FIELDS: Final[tuple[str, ...]] = ("full_name", "email", "mobile_number", "is_active")


def _parse_position(value: Any) -> Position:
    try:
        return value if isinstance(value, Position) else Position(value)
    except ValueError:
        valid = ", ".join(p.value for p in Position)
        raise InvalidTransition(
            f"Invalid position: {value}. Must be one of {valid}", field="position"
        ) from None


class UserService:
    """Create, read, update and delete user accounts."""

    def __init__(self, database: Database):
        self.database = database

    def list_users(
        self,
        actor: Actor,
        position: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 25,
    ) -> dict[str, Any]:
        require_permission(actor, Action.USER_VIEW)
        position_filter = _parse_position(position) if position else None

        with self.database.session_scope() as session:
            users, total = UserRepository.list(session, position_filter, search, page, page_size)
            results = [u.to_public_dict() for u in users]

        return {
            "results": results,
            "count": total,
            "page": page,
            "page_size": page_size,
            "total_pages": (total + page_size - 1) // page_size,
        }

    def list_by_position(self, actor: Actor, position: str) -> list[dict[str, Any]]:
        """Active users holding a position, for assignment pickers."""
        require_permission(actor, Action.USER_VIEW)
        with self.database.session_scope() as session:
            users = UserRepository.list_active_by_position(session, _parse_position(position))
            return [u.to_public_dict() for u in users]

    def get_user(self, actor: Actor, user_id: int) -> dict[str, Any]:
        if actor.id != user_id:
            require_permission(actor, Action.USER_VIEW)
        with self.database.session_scope() as session:
            return UserRepository.get(session, user_id).to_public_dict()

    def create_user(
        self,
        actor: Actor,
        data: dict[str, Any],
        client: Optional[ClientMeta] = None,
    ) -> dict[str, Any]:
        """
        Create an account.

        Args:
            actor: Admin performing the action
            data: full_name, email, mobile_number, position, password and
                optional department, employee_id

        Raises:
            Forbidden: If the actor is not an admin
            InvalidTransition: If a required field is missing or invalid
            Conflict: If the e-mail or employee id is already taken
        """
        require_permission(actor, Action.USER_MANAGE)

        for name in ("full_name", "email", "mobile_number", "position"):
            if not data.get(name) or not str(data[name]).strip():
                raise InvalidTransition(f"{name} is required", field=name)
        position = _parse_position(data["position"])

        password = data.get("password") or ""
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidTransition(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="password",
            )

        with self.database.session_scope() as session:
            user = User(
                full_name=data["full_name"].strip(),
                email=data["email"].strip().lower(),
                mobile_number=str(data["mobile_number"]).strip(),
                position=position.value,
                department=data.get("department"),
                employee_id=data.get("employee_id") or None,
                password_hash=hash_password(password),
                is_active=True,
            )
            session.add(user)
            session.flush()

            created = user.to_public_dict()
            AuditTrail.record(
                session, actor.id, AuditAction.CREATE, "User",
                user.id, user.full_name, {"created": created}, client,
            )

        logger.info("User %s (%s) created by %s", created["id"], position.value, actor.full_name)
        return created

    def update_user(
        self,
        actor: Actor,
        user_id: int,
        updates: dict[str, Any],
        client: Optional[ClientMeta] = None,
    ) -> dict[str, Any]:
        """
        Update an account.

        Raises:
            Forbidden: If a non-admin edits another account or a restricted field
            InvalidTransition: If a value is invalid
        """
        is_admin = can(actor, Action.USER_MANAGE)
        if not is_admin and actor.id != user_id:
            raise Forbidden("You can only update your own account")

        allowed = ADMIN_EDITABLE_FIELDS if is_admin else SELF_EDITABLE_FIELDS
        restricted = sorted(set(updates) - allowed - {"password"})
        if restricted:
            raise Forbidden(f"You may not change: {', '.join(restricted)}")

        for name in REQUIRED_FIELDS:
            if name in updates and (
                updates[name] is None
                or (isinstance(updates[name], str) and not updates[name].strip())
            ):
                raise InvalidTransition(f"{name} is required", field=name)

        if "position" in updates:
            updates = {**updates, "position": _parse_position(updates["position"]).value}
        if "email" in updates:
            updates = {**updates, "email": str(updates["email"]).strip().lower()}
        if is_admin and actor.id == user_id and updates.get("is_active") is False:
            raise InvalidTransition("You cannot deactivate your own account", field="is_active")

        with self.database.session_scope() as session:
            user = UserRepository.get(session, user_id)
            before = user.to_public_dict()

            for name, value in updates.items():
                if name == "password":
                    if not value or len(value) < MIN_PASSWORD_LENGTH:
                        raise InvalidTransition(
                            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                            field="password",
                        )
                    user.password_hash = hash_password(value)
                else:
                    setattr(user, name, value)
            session.flush()

            after = user.to_public_dict()
            changed = {k: {"before": before[k], "after": after[k]}
                       for k in after if before[k] != after[k] and k != "updated_at"}
            if "password" in updates:
                changed["password"] = {"before": "***", "after": "***"}

            AuditTrail.record(
                session, actor.id, AuditAction.UPDATE, "User",
                user.id, user.full_name, changed, client,
            )
        return after

    def delete_user(
        self,
        actor: Actor,
        user_id: int,
        client: Optional[ClientMeta] = None,
    ) -> dict[str, Any]:
        """
        Delete an account, or deactivate it when files still reference it.

        Returns:
            {"deleted": bool, "deactivated": bool}
        """
        require_permission(actor, Action.USER_MANAGE)
        if actor.id == user_id:
            raise InvalidTransition("You cannot delete your own account", field="id")

        with self.database.session_scope() as session:
            user = UserRepository.get(session, user_id)
            snapshot = user.to_public_dict()

            if FileRepository.count_referencing_user(session, user_id):
                user.is_active = False
                AuditTrail.record(
                    session, actor.id, AuditAction.UPDATE, "User",
                    user.id, user.full_name,
                    {"is_active": {"before": snapshot["is_active"], "after": False}},
                    client,
                )
                logger.info("User %s is referenced by files; deactivated instead", user_id)
                return {"deleted": False, "deactivated": True}

            session.delete(user)
            AuditTrail.record(
                session, actor.id, AuditAction.DELETE, "User",
                user_id, snapshot["full_name"], {"deleted": snapshot}, client,
            )
        return {"deleted": True, "deactivated": False}

    def ensure_admin(self, email: str, password: str, full_name: str = "Administrator") -> bool:
        """
        Create the first admin account when no admin exists yet.

        Returns:
            True if an account was created
        """
        with self.database.session_scope() as session:
            if UserRepository.list_active_by_position(session, Position.ADMIN):
                return False
            if UserRepository.get_by_email(session, email) is not None:
                logger.warning("Bootstrap admin e-mail is taken by a non-admin account")
                return False
            user = User(
                full_name=full_name,
                email=email.strip().lower(),
                mobile_number="",
                position=Position.ADMIN.value,
                password_hash=hash_password(password),
                is_active=True,
            )
            session.add(user)
            session.flush()
            AuditTrail.record(
                session, None, AuditAction.CREATE, "User",
                user.id, user.full_name, {"created": user.to_public_dict()},
            )
        logger.info("Bootstrap admin account created")
        return True
