"""
PropertyFlow Identity & Role Policy

Resolves bearer credentials to active accounts and decides which
operations and files each role may touch.
"""

from core.identity.auth import (
    AuthService,
    TokenClaims,
    TokenService,
    authenticate,
    extract_bearer,
    hash_password,
    resolve_actor,
    resolve_user,
    verify_password,
)
from core.identity.policy import (
    ROLE_PERMISSIONS,
    Action,
    allowed_actions,
    can,
    require_permission,
    visible_files_clause,
)

__all__ = [
    # Auth
    "AuthService",
    "TokenClaims",
    "TokenService",
    "authenticate",
    "extract_bearer",
    "hash_password",
    "resolve_actor",
    "resolve_user",
    "verify_password",
    # Policy
    "ROLE_PERMISSIONS",
    "Action",
    "allowed_actions",
    "can",
    "require_permission",
    "visible_files_clause",
]
