"""
User Routes - Account administration.

Routes:
- GET    /api/users                      - Paginated list (position filter, search)
- POST   /api/users                      - Create (admin)
- GET    /api/users/position/{position}  - Active users holding a position
- GET    /api/users/{id}                 - One account
- PATCH  /api/users/{id}                 - Update (admin, or own contact fields)
- DELETE /api/users/{id}                 - Delete or deactivate (admin)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.schema import Actor
from core.workflow import ClientMeta
from web.dependencies import Services, client_meta, current_actor, get_services
from web.schemas import UserCreateRequest, UserUpdateRequest

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("")
def list_users(
    position: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    return services.users.list_users(actor, position, search, page, page_size)


@router.post("", status_code=201)
def create_user(
    body: UserCreateRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    return services.users.create_user(actor, body.model_dump(), client)


@router.get("/position/{position}")
def users_by_position(
    position: str,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    return services.users.list_by_position(actor, position)


@router.get("/{user_id}")
def get_user(
    user_id: int,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    return services.users.get_user(actor, user_id)


@router.patch("/{user_id}")
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    return services.users.update_user(
        actor, user_id, body.model_dump(exclude_unset=True), client
    )


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
    client: ClientMeta = Depends(client_meta),
):
    return services.users.delete_user(actor, user_id, client)
