# controllers/wizard_controller.py
import logging
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, Field

from helpers.deps import client_for_user, get_base_client
from helpers.errors import NotFound
from helpers.ghl_client import GHLClient
from helpers.ghl_config import ghl_config, wizard_default_ttl_days
from helpers.token_helper import get_current_user
from helpers.wizard_service import create_session, fetch_by_token, normalize_fields, push_responses, submit
from models.auth import User
from models.wizard import WizardSession, WizardTemplate

router = APIRouter()
logger = logging.getLogger("wizard")


class TemplatePayload(BaseModel):
    name: str
    description: Optional[str] = None
    fields: List[Dict[str, Any]] = Field(default_factory=list)


class TemplateUpdatePayload(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[List[Dict[str, Any]]] = None


class SessionPayload(BaseModel):
    clientName: Optional[str] = None
    clientEmail: Optional[str] = None
    ttlDays: Optional[int] = None


class SubmitPayload(BaseModel):
    responses: Dict[str, Any] = Field(default_factory=dict)


def _template_out(t: WizardTemplate) -> dict:
    return {
        "id": t.id,
        "locationId": t.location_id,
        "name": t.name,
        "description": t.description,
        "fields": t.form_fields or [],
        "createdAt": t.created_at,
        "updatedAt": t.updated_at,
    }


def _session_out(s: WizardSession) -> dict:
    return {
        "id": s.id,
        "clientName": s.client_name,
        "clientEmail": s.client_email,
        "status": s.status.value if hasattr(s.status, "value") else s.status,
        "responses": s.responses,
        "expiresAt": s.expires_at,
        "completedAt": s.completed_at,
        "link": f'{ghl_config()["app_base_url"]}/wizard/{s.access_token}',
    }


async def _owned(template_id: int, user: User) -> WizardTemplate:
    t = await WizardTemplate.get_or_none(id=template_id, user_id=user.id)
    if not t:
        raise NotFound("Wizard template not found")
    return t


# ---------------------------------------------------------------- templates (owner)

@router.post("/locations/{location_id}/wizards")
async def create_template(
    location_id: str,
    payload: TemplatePayload,
    user: Annotated[User, Depends(get_current_user)],
):
    t = await WizardTemplate.create(
        user=user,
        location_id=location_id,
        name=payload.name.strip(),
        description=payload.description,
        form_fields=normalize_fields(payload.fields),
    )
    return {"success": True, "template": _template_out(t)}


@router.get("/locations/{location_id}/wizards")
async def list_templates(
    location_id: str,
    user: Annotated[User, Depends(get_current_user)],
):
    rows = await WizardTemplate.filter(user_id=user.id, location_id=location_id).order_by("-created_at")
    return {"success": True, "templates": [_template_out(t) for t in rows]}


@router.get("/wizards/{template_id}")
async def get_template(template_id: int, user: Annotated[User, Depends(get_current_user)]):
    return {"success": True, "template": _template_out(await _owned(template_id, user))}


@router.put("/wizards/{template_id}")
async def update_template(
    template_id: int,
    payload: TemplateUpdatePayload,
    user: Annotated[User, Depends(get_current_user)],
):
    t = await _owned(template_id, user)
    if payload.name is not None:
        t.name = payload.name.strip()
    if payload.description is not None:
        t.description = payload.description
    if payload.fields is not None:
        t.form_fields = normalize_fields(payload.fields)
    await t.save()
    return {"success": True, "template": _template_out(t)}


@router.delete("/wizards/{template_id}")
async def delete_template(template_id: int, user: Annotated[User, Depends(get_current_user)]):
    t = await _owned(template_id, user)
    await t.delete()
    return {"success": True}


# ---------------------------------------------------------------- sessions (owner)

@router.post("/wizards/{template_id}/sessions")
async def issue_session(
    template_id: int,
    payload: SessionPayload,
    user: Annotated[User, Depends(get_current_user)],
):
    t = await _owned(template_id, user)
    s = await create_session(
        t,
        client_name=payload.clientName,
        client_email=payload.clientEmail,
        ttl_days=payload.ttlDays or wizard_default_ttl_days(),
    )
    logger.info("wizard template=%s session=%s issued", t.id, s.id)
    return {"success": True, "session": _session_out(s)}


@router.get("/wizards/{template_id}/sessions")
async def list_sessions(template_id: int, user: Annotated[User, Depends(get_current_user)]):
    t = await _owned(template_id, user)
    rows = await WizardSession.filter(template_id=t.id).order_by("-created_at")
    return {"success": True, "sessions": [_session_out(s) for s in rows]}


# ---------------------------------------------------------------- client (token only)

@router.get("/client/wizard/{access_token}")
async def client_fetch(access_token: str):
    session, template = await fetch_by_token(access_token)
    return {
        "success": True,
        "wizard": {
            "name": template.name,
            "description": template.description,
            "fields": [
                {k: f.get(k) for k in ("id", "label", "type", "required")}
                for f in template.form_fields or []
            ],
        },
        "clientName": session.client_name,
        "status": session.status.value if hasattr(session.status, "value") else session.status,
        "expiresAt": session.expires_at,
    }


async def _push_in_background(base: GHLClient, template: WizardTemplate, responses: Dict[str, Any]):
    await push_responses(client_for_user(base, template.user_id), template, responses)


@router.post("/client/wizard/{access_token}/submit")
async def client_submit(
    access_token: str,
    payload: SubmitPayload,
    background_tasks: BackgroundTasks,
    base: Annotated[GHLClient, Depends(get_base_client)],
):
    session, template = await submit(access_token, payload.responses)
    background_tasks.add_task(_push_in_background, base, template, session.responses or {})
    return {"success": True, "status": session.status.value, "completedAt": session.completed_at}
