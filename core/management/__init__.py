"""
PropertyFlow Management

Administration of user accounts and master data.
"""

from core.management.master_data import MASTER_DATA_FIELDS, MasterDataService
from core.management.users import UserService

__all__ = [
    "MASTER_DATA_FIELDS",
    "MasterDataService",
    "UserService",
]
