"""
Notification Routes - The current user's notifications.

Routes:
- GET    /api/notifications            - Own and broadcast, newest first
- PATCH  /api/notifications/read-all   - Mark all own notifications read
- PATCH  /api/notifications/{id}/read  - Mark one read
- DELETE /api/notifications/{id}       - Delete one
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from core.schema import Actor
from web.dependencies import Services, current_actor, get_services

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    return services.notifications.list_for(actor.id, unread_only, page, page_size)


@router.patch("/read-all")
def mark_all_read(
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    return {"updated": services.notifications.mark_all_read(actor.id)}


@router.patch("/{notification_id}/read")
def mark_read(
    notification_id: int,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    return services.notifications.mark_read(actor.id, notification_id)


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
):
    services.notifications.delete(actor.id, notification_id)
    return {"message": "Deleted"}
