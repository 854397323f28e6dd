"""
Master Data - Banks, property types, locations and system configuration.

Reference lists are readable by every authenticated user; system
configuration is admin-only. Every mutation is audited with before/after.
"""

from __future__ import annotations

import logging
from typing import Any, Final, Optional

from core.exceptions import Conflict, InvalidTransition
from core.identity.policy import Action, require_permission
from core.schema import Actor, AuditAction
from core.store.database import Database
from core.store.repository import MasterDataRepository
from core.workflow.audit import AuditTrail, ClientMeta

logger = logging.getLogger(__name__)

# Writable fields per kind; all are required on create
MASTER_DATA_FIELDS: Final[dict[str, tuple[str, ...]]] = {
    "bank": ("name", "branch"),
    "property_type": ("category", "name"),
    "location": ("state", "district", "city"),
    "config": ("config_type", "key", "value"),
}


def _label(kind: str, record) -> str:
    if kind == "bank":
        return f"{record.name} - {record.branch}"
    if kind == "property_type":
        return f"{record.category} / {record.name}"
    if kind == "location":
        return f"{record.city}, {record.district}, {record.state}"
    return f"{record.config_type}.{record.key}"


class MasterDataService:
    """CRUD over the master-data tables."""

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def _check_read(actor: Actor, kind: str) -> None:
        require_permission(actor, Action.CONFIG_VIEW if kind == "config" else Action.MASTER_DATA_VIEW)

    @staticmethod
    def _clean(kind: str, data: dict[str, Any], partial: bool) -> dict[str, Any]:
        fields = MASTER_DATA_FIELDS[kind]
        unknown = sorted(set(data) - set(fields))
        if unknown:
            raise InvalidTransition(f"Unknown field: {unknown[0]}", field=unknown[0])

        cleaned: dict[str, Any] = {}
        for name in fields:
            if name not in data:
                if not partial:
                    raise InvalidTransition(f"{name} is required", field=name)
                continue
            value = data[name]
            if name == "value":
                cleaned[name] = value
                continue
            if value is None or not str(value).strip():
                raise InvalidTransition(f"{name} is required", field=name)
            cleaned[name] = str(value).strip()
        return cleaned

    def list(self, actor: Actor, kind: str) -> list[dict[str, Any]]:
        MasterDataRepository.model_for(kind)
        self._check_read(actor, kind)
        with self.database.session_scope() as session:
            return [r.to_dict() for r in MasterDataRepository.list(session, kind)]

    def create(
        self,
        actor: Actor,
        kind: str,
        data: dict[str, Any],
        client: Optional[ClientMeta] = None,
    ) -> dict[str, Any]:
        """
        Create a master-data record.

        Raises:
            Forbidden: If the actor is not an admin
            InvalidTransition: If a required field is missing
            Conflict: If a configuration key already exists for its type
        """
        model = MasterDataRepository.model_for(kind)
        require_permission(actor, Action.MASTER_DATA_MANAGE)
        values = self._clean(kind, data, partial=False)
        if kind == "config":
            values["created_by"] = actor.id

        with self.database.session_scope() as session:
            record = model(**values)
            session.add(record)
            session.flush()
            created = record.to_dict()
            AuditTrail.record(
                session, actor.id, AuditAction.CREATE, model.__name__,
                record.id, _label(kind, record), {"created": created}, client,
            )

        logger.info("%s %s created by %s", model.__name__, created["id"], actor.full_name)
        return created

    def update(
        self,
        actor: Actor,
        kind: str,
        record_id: int,
        data: dict[str, Any],
        client: Optional[ClientMeta] = None,
    ) -> dict[str, Any]:
        model = MasterDataRepository.model_for(kind)
        require_permission(actor, Action.MASTER_DATA_MANAGE)
        values = self._clean(kind, data, partial=True)

        with self.database.session_scope() as session:
            record = MasterDataRepository.get(session, kind, record_id)
            before = record.to_dict()
            for name, value in values.items():
                setattr(record, name, value)
            session.flush()
            after = record.to_dict()
            AuditTrail.record(
                session, actor.id, AuditAction.UPDATE, model.__name__,
                record.id, _label(kind, record),
                {"before": before, "after": after}, client,
            )
        return after

    def delete(
        self,
        actor: Actor,
        kind: str,
        record_id: int,
        client: Optional[ClientMeta] = None,
    ) -> None:
        model = MasterDataRepository.model_for(kind)
        require_permission(actor, Action.MASTER_DATA_MANAGE)

        with self.database.session_scope() as session:
            record = MasterDataRepository.get(session, kind, record_id)
            if MasterDataRepository.count_referencing_files(session, kind, record_id):
                raise Conflict(f"{model.__name__} {record_id} is used by property files")
            snapshot = record.to_dict()
            label = _label(kind, record)
            session.delete(record)
            AuditTrail.record(
                session, actor.id, AuditAction.DELETE, model.__name__,
                record_id, label, {"deleted": snapshot}, client,
            )
