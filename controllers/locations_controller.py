# controllers/locations_controller.py
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from helpers.bulk_copy import copy_custom_fields, copy_custom_values
from helpers.deps import get_ghl_client
from helpers.errors import BadRequest
from helpers.ghl_client import GHLClient

router = APIRouter()


class BulkCopyPayload(BaseModel):
    companyId: Optional[str] = None
    sourceLocationId: str
    targetLocationIds: List[str] = Field(default_factory=list)


def _check(payload: BulkCopyPayload) -> None:
    if not payload.sourceLocationId.strip():
        raise BadRequest("sourceLocationId is required")
    if not payload.targetLocationIds:
        raise BadRequest("targetLocationIds must list at least one location")


@router.get("/locations")
async def list_locations(
    client: Annotated[GHLClient, Depends(get_ghl_client)],
    companyId: Optional[str] = Query(None),
):
    if not companyId:
        raise BadRequest("companyId is required")
    return await client.list_locations(companyId)


@router.post("/bulk/copy-custom-values")
async def bulk_copy_custom_values(
    payload: BulkCopyPayload,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
):
    _check(payload)
    return await copy_custom_values(client, payload.sourceLocationId, payload.targetLocationIds, payload.companyId)


@router.post("/bulk/copy-custom-fields")
async def bulk_copy_custom_fields(
    payload: BulkCopyPayload,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
):
    _check(payload)
    return await copy_custom_fields(client, payload.sourceLocationId, payload.targetLocationIds, payload.companyId)
