"""
Master Data Routes - Banks, property types, locations and configuration.

Each kind gets the same four routes:
- GET    /api/{kind}       - List
- POST   /api/{kind}       - Create (admin)
- PUT    /api/{kind}/{id}  - Update (admin)
- DELETE /api/{kind}/{id}  - Delete (admin)

for kind in banks, property-types, locations and config.
"""

from typing import Type

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.schema import Actor
from core.workflow import ClientMeta
from web.dependencies import Services, client_meta, current_actor, get_services
from web.schemas import BankRequest, ConfigRequest, LocationRequest, PropertyTypeRequest

router = APIRouter(prefix="/api", tags=["master-data"])

# URL segment -> (service kind, request body)
MASTER_DATA_ROUTES: dict[str, tuple[str, Type[BaseModel]]] = {
    "banks": ("bank", BankRequest),
    "property-types": ("property_type", PropertyTypeRequest),
    "locations": ("location", LocationRequest),
    "config": ("config", ConfigRequest),
}


def _register(segment: str, kind: str, body_model: Type[BaseModel]) -> None:
    """Add the list/create/update/delete routes for one kind."""

    def list_records(
        actor: Actor = Depends(current_actor),
        services: Services = Depends(get_services),
    ):
        return services.master_data.list(actor, kind)

    def create_record(
        body: body_model,
        actor: Actor = Depends(current_actor),
        services: Services = Depends(get_services),
        client: ClientMeta = Depends(client_meta),
    ):
        return services.master_data.create(
            actor, kind, body.model_dump(exclude_unset=True), client
        )

    def update_record(
        record_id: int,
        body: body_model,
        actor: Actor = Depends(current_actor),
        services: Services = Depends(get_services),
        client: ClientMeta = Depends(client_meta),
    ):
        return services.master_data.update(
            actor, kind, record_id, body.model_dump(exclude_unset=True), client
        )

    def delete_record(
        record_id: int,
        actor: Actor = Depends(current_actor),
        services: Services = Depends(get_services),
        client: ClientMeta = Depends(client_meta),
    ):
        services.master_data.delete(actor, kind, record_id, client)
        return {"message": "Deleted"}

    router.add_api_route(f"/{segment}", list_records, methods=["GET"],
                         name=f"list_{kind}")
    router.add_api_route(f"/{segment}", create_record, methods=["POST"],
                         status_code=201, name=f"create_{kind}")
    router.add_api_route(f"/{segment}/{{record_id}}", update_record, methods=["PUT"],
                         name=f"update_{kind}")
    router.add_api_route(f"/{segment}/{{record_id}}", delete_record, methods=["DELETE"],
                         name=f"delete_{kind}")


for _segment, (_kind, _body) in MASTER_DATA_ROUTES.items():
    _register(_segment, _kind, _body)
