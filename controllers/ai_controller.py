# controllers/ai_controller.py
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from controllers.custom_values_controller import tenant_key
from helpers.ai_generator import generate, resolve_ai_credentials
from helpers.deps import get_ghl_client
from helpers.ghl_client import GHLClient
from helpers.template_engine import find_placeholders, render_prompt
from helpers.token_helper import get_optional_user
from models.auth import User

router = APIRouter()
logger = logging.getLogger("ai")


class PromptPayload(BaseModel):
    locationId: str
    prompt: str
    companyId: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None


class GenerateValuePayload(PromptPayload):
    customValueId: str
    customValueName: str


async def _run(client: GHLClient, user: Optional[User], payload: PromptPayload):
    tenant = tenant_key(payload.locationId, payload.companyId)
    processed = await render_prompt(client, tenant, payload.locationId, payload.prompt)
    creds = resolve_ai_credentials(user, payload.provider)
    text = await generate(processed, creds["provider"], creds["api_key"], payload.model or creds["model"])
    return tenant, processed, text


@router.post("/ai/test-prompt")
async def test_prompt(
    payload: PromptPayload,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
    user: Annotated[Optional[User], Depends(get_optional_user)],
):
    _, processed, text = await _run(client, user, payload)
    return {
        "success": True,
        "placeholders": find_placeholders(payload.prompt),
        "processedPrompt": processed,
        "generatedText": text,
    }


@router.post("/ai/generate-value")
async def generate_value(
    payload: GenerateValuePayload,
    client: Annotated[GHLClient, Depends(get_ghl_client)],
    user: Annotated[Optional[User], Depends(get_optional_user)],
):
    tenant, processed, text = await _run(client, user, payload)
    updated = await client.update_custom_value(
        tenant,
        payload.locationId,
        payload.customValueId,
        {"name": payload.customValueName, "value": text},
    )
    logger.info("generated value location=%s custom_value=%s", payload.locationId, payload.customValueId)
    return {
        "success": True,
        "processedPrompt": processed,
        "generatedText": text,
        "customValue": updated.get("customValue", updated) if isinstance(updated, dict) else updated,
    }
