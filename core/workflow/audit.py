"""
Audit Trail - Append-only record of mutations, logins and logouts.

Entries are written inside the caller's transaction, so an audit entry
exists if and only if the mutation it describes was committed. There is
no update or delete path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.schema import AuditAction
from core.store.models import AuditLogEntry

logger = logging.getLogger(__name__)

MAX_USER_AGENT_LENGTH = 512


@dataclass(frozen=True)
class ClientMeta:
    """Network origin of a request, recorded with each audit entry."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditTrail:
    """Writes and queries audit entries."""

    @staticmethod
    def record(
        session: Session,
        actor_id: Optional[int],
        action: AuditAction,
        model_name: str,
        object_id: Any,
        object_repr: str = "",
        changes: Optional[dict[str, Any]] = None,
        client: Optional[ClientMeta] = None,
    ) -> AuditLogEntry:
        """
        Append an audit entry to the current transaction.

        Args:
            session: Active session of the mutation being audited
            actor_id: User performing the action (None for automated actors)
            action: create / update / delete / login / logout
            model_name: Table-level name of the affected record, e.g. ``PropertyFile``
            object_id: ID of the affected record
            object_repr: Human-readable label of the record
            changes: JSON-serialisable before/after detail
            client: Request origin
        """
        client = client or ClientMeta()
        entry = AuditLogEntry(
            user_id=actor_id,
            action_type=action.value,
            model_name=model_name,
            object_id=str(object_id),
            object_repr=(object_repr or "")[:255],
            changes=changes,
            ip_address=client.ip_address,
            user_agent=(client.user_agent or "")[:MAX_USER_AGENT_LENGTH] or None,
        )
        session.add(entry)
        logger.debug(
            "Audit %s %s:%s by user %s", action.value, model_name, object_id, actor_id
        )
        return entry

    @staticmethod
    def query(
        session: Session,
        model_name: Optional[str] = None,
        object_id: Optional[Any] = None,
        user_id: Optional[int] = None,
        action: Optional[AuditAction] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[AuditLogEntry], int]:
        """Filter entries newest first, returning the page and the total count."""
        conditions = []
        if model_name:
            conditions.append(AuditLogEntry.model_name == model_name)
        if object_id is not None:
            conditions.append(AuditLogEntry.object_id == str(object_id))
        if user_id is not None:
            conditions.append(AuditLogEntry.user_id == user_id)
        if action is not None:
            conditions.append(AuditLogEntry.action_type == action.value)

        stmt = (
            select(AuditLogEntry)
            .where(*conditions)
            .order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        total = session.scalar(select(func.count(AuditLogEntry.id)).where(*conditions)) or 0
        return list(session.scalars(stmt)), total
