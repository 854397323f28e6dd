"""
PropertyFlow Record Store

Relational persistence for users, master data, property files and their
payloads, notifications and the audit trail.
"""

from core.store.database import Database, get_database, reset_database
from core.store.models import (
    AuditLogEntry,
    Bank,
    Base,
    Document,
    Location,
    Notification,
    PropertyData,
    PropertyFile,
    PropertyType,
    SystemConfiguration,
    User,
    ValidationData,
    ValidationPhoto,
    utcnow,
)
from core.store.repository import (
    FileRepository,
    MasterDataRepository,
    UserRepository,
)

__all__ = [
    # Connection
    "Database",
    "get_database",
    "reset_database",
    # Models
    "AuditLogEntry",
    "Bank",
    "Base",
    "Document",
    "Location",
    "Notification",
    "PropertyData",
    "PropertyFile",
    "PropertyType",
    "SystemConfiguration",
    "User",
    "ValidationData",
    "ValidationPhoto",
    "utcnow",
    # Repositories
    "FileRepository",
    "MasterDataRepository",
    "UserRepository",
]
