"""
Stats Routes

Routes:
- GET /api/stats/overall    - System-wide counts (admin, coordinator)
- GET /api/stats/dashboard  - Figures over the caller's visible files
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from core.schema import Actor
from web.dependencies import Services, current_actor, get_services

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("/overall")
def overall(actor: Actor = Depends(current_actor), services: Services = Depends(get_services)):
    return services.stats.overall(actor)


@router.get("/dashboard")
def dashboard(actor: Actor = Depends(current_actor), services: Services = Depends(get_services)):
    return services.stats.dashboard(actor)
