"""
Statistics - Overall file counts and per-role dashboard figures.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Final

from sqlalchemy import func, select

from core.identity.policy import Action, require_permission, visible_files_clause
from core.schema import ROLE_WORK_STATUS, Actor, FileStatus
from core.store.database import Database
from core.store.models import AuditLogEntry, utcnow
from core.store.repository import FileRepository, UserRepository

RECENT_ACTIVITY_DAYS: Final[int] = 7


def _status_key(status: FileStatus) -> str:
    return f"{status.value.replace('-', '_')}_files"


def completion_rate(completed: int, total: int) -> int:
    """Completed share of total as a whole percentage, halves rounded up."""
    if total <= 0:
        return 0
    return int(completed * 100 / total + 0.5)


class StatsService:
    """Read-only aggregates over property files."""

    def __init__(self, database: Database):
        self.database = database

    def overall(self, actor: Actor) -> dict[str, Any]:
        """
        Totals across the whole system.

        Returns a count for every status, zero when no file holds it,
        e.g. ``data_entry_files`` and ``ready_to_print_files``.
        """
        require_permission(actor, Action.STATS_OVERALL)
        with self.database.session_scope() as session:
            counts = FileRepository.count_by_status(session)
            total_users = UserRepository.count(session)

        result: dict[str, Any] = {
            "total_files": sum(counts.values()),
            "total_users": total_users,
        }
        for status in FileStatus:
            result[_status_key(status)] = counts.get(status.value, 0)
        return result

    def dashboard(self, actor: Actor) -> dict[str, Any]:
        """Figures over the files visible to the actor."""
        require_permission(actor, Action.STATS_DASHBOARD)
        since = utcnow() - timedelta(days=RECENT_ACTIVITY_DAYS)

        with self.database.session_scope() as session:
            counts = FileRepository.count_by_status(session, visible_files_clause(actor))
            recent = session.scalar(
                select(func.count(AuditLogEntry.id)).where(
                    AuditLogEntry.user_id == actor.id,
                    AuditLogEntry.created_at >= since,
                )
            ) or 0

        total = sum(counts.values())
        work_status = ROLE_WORK_STATUS.get(actor.position)
        pending = counts.get(work_status.value, 0) if work_status else 0

        return {
            "total_assigned": total,
            "pending_tasks": pending,
            "recent_activity": recent,
            "completion_rate": completion_rate(counts.get(FileStatus.COMPLETED.value, 0), total),
            "status_distribution": counts,
        }
