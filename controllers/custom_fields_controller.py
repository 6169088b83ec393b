# controllers/custom_fields_controller.py
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from controllers.custom_values_controller import tenant_key
from helpers.deps import get_ghl_client
from helpers.ghl_client import GHLClient

router = APIRouter()


@router.get("/custom-fields/{location_id}")
async def list_custom_fields(
    location_id: str,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
    companyId: Optional[str] = Query(None),
):
    return await client.call("GET", f"/locations/{location_id}/customFields", tenant_key(location_id, companyId))


@router.post("/custom-fields/{location_id}")
async def create_custom_field(
    location_id: str,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
    body: Dict[str, Any] = Body(...),
    companyId: Optional[str] = Query(None),
):
    return await client.create_custom_field(tenant_key(location_id, companyId), location_id, body)


@router.put("/custom-fields/{location_id}/{custom_field_id}")
async def update_custom_field(
    location_id: str,
    custom_field_id: str,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
    body: Dict[str, Any] = Body(...),
    companyId: Optional[str] = Query(None),
):
    return await client.update_custom_field(tenant_key(location_id, companyId), location_id, custom_field_id, body)


@router.delete("/custom-fields/{location_id}/{custom_field_id}")
async def delete_custom_field(
    location_id: str,
    custom_field_id: str,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
    companyId: Optional[str] = Query(None),
):
    await client.delete_custom_field(tenant_key(location_id, companyId), location_id, custom_field_id)
    return {"success": True}
