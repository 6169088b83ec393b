# controllers/custom_values_controller.py
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from helpers.deps import get_ghl_client
from helpers.ghl_client import GHLClient

router = APIRouter()


def tenant_key(location_id: str, company_id: Optional[str]) -> str:
    """Agency-level credentials are keyed by company, location installs by location."""
    return company_id or location_id


@router.get("/custom-values/{location_id}")
async def list_custom_values(
    location_id: str,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
    companyId: Optional[str] = Query(None),
):
    return await client.call("GET", f"/locations/{location_id}/customValues", tenant_key(location_id, companyId))


@router.post("/custom-values/{location_id}")
async def create_custom_value(
    location_id: str,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
    body: Dict[str, Any] = Body(...),
    companyId: Optional[str] = Query(None),
):
    return await client.create_custom_value(tenant_key(location_id, companyId), location_id, body)


@router.put("/custom-values/{location_id}/{custom_value_id}")
async def update_custom_value(
    location_id: str,
    custom_value_id: str,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
    body: Dict[str, Any] = Body(...),
    companyId: Optional[str] = Query(None),
):
    return await client.update_custom_value(tenant_key(location_id, companyId), location_id, custom_value_id, body)


@router.delete("/custom-values/{location_id}/{custom_value_id}")
async def delete_custom_value(
    location_id: str,
    custom_value_id: str,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
    companyId: Optional[str] = Query(None),
):
    await client.delete_custom_value(tenant_key(location_id, companyId), location_id, custom_value_id)
    return {"success": True}
