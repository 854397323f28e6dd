"""
Auth Routes - Login, logout and the current account.

Routes:
- POST /api/auth/login   - Exchange credentials for a bearer token
- POST /api/auth/logout  - Record a logout
- GET  /api/auth/me      - Current account and its permitted actions
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from core.identity.policy import allowed_actions
from core.workflow import ClientMeta
from web.dependencies import (
    Principal,
    Services,
    client_meta,
    current_principal,
    get_services,
)
from web.schemas import LoginRequest

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
def login(
    body: LoginRequest,
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    return services.auth.login(body.email, body.password, client)


@router.post("/logout")
def logout(
    principal: Principal = Depends(current_principal),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    services.auth.logout(principal.actor, client)
    return {"message": "Logged out"}


@router.get("/me")
def me(principal: Principal = Depends(current_principal)):
    profile = dict(principal.profile)
    profile["permissions"] = sorted(a.value for a in allowed_actions(principal.actor))
    return profile
