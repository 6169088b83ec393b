# controllers/oauth_controller.py
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from helpers.deps import get_base_client, get_token_store
from helpers.errors import AppError, BadRequest, NotFound
from helpers.ghl_client import GHLClient
from helpers.ghl_config import ghl_config
from helpers.ghl_oauth import build_install_url
from helpers.sso import decrypt_sso_payload
from helpers.token_helper import get_current_user
from helpers.token_store import Credential, DatabaseTokenStore, TokenStore
from models.auth import User
from models.crm import IntegrationOAuthState

install_router = APIRouter()
router = APIRouter()
logger = logging.getLogger("oauth")


def _back(redirect_to: Optional[str], **params) -> str:
    base = redirect_to or f'{ghl_config()["app_base_url"]}/'
    sep = "&" if "?" in base else "?"
    return f"{base}{sep}{urlencode({k: v for k, v in params.items() if v is not None})}"


def _state_cutoff() -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=ghl_config()["oauth_state_ttl_minutes"])


async def _prune_states() -> None:
    """Connect attempts that never came back leave their state row behind."""
    stale = await IntegrationOAuthState.filter(created_at__lt=_state_cutoff()).delete()
    if stale:
        logger.info("pruned %d stale oauth states", stale)


def _sanitize_redirect(back: Optional[str]) -> Optional[str]:
    if back and back.startswith("/") and not back.startswith("//"):
        return back
    return None


# ---------------------------------------------------------------- install flow

@install_router.get("/install")
async def install():
    return RedirectResponse(url=build_install_url())


@router.post("/oauth/connect")
async def start_connect(
    user: Annotated[User, Depends(get_current_user)],
    redirect_to: Optional[str] = Body(default=None, embed=True),
):
    await _prune_states()
    state = secrets.token_urlsafe(24)
    await IntegrationOAuthState.create(user=user, state=state, redirect_to=_sanitize_redirect(redirect_to))
    logger.info("oauth start user=%s state=%s", user.id, state)
    return {"auth_url": build_install_url(state=state)}


@install_router.get("/authorize-handler")
async def authorize_handler(
    request: Request,
    base: Annotated[GHLClient, Depends(get_base_client)],
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
):
    if not code:
        raise BadRequest("No authorization code provided")

    store: TokenStore = request.app.state.token_store
    redirect_to = None
    if state:
        st = await IntegrationOAuthState.get_or_none(state=state)
        if not st:
            return RedirectResponse(url=_back(None, auth="error", reason="invalid_state"))
        await st.delete()
        await _prune_states()
        created = st.created_at if st.created_at.tzinfo else st.created_at.replace(tzinfo=timezone.utc)
        if created < _state_cutoff():
            return RedirectResponse(url=_back(st.redirect_to, auth="error", reason="state_expired"))
        store = DatabaseTokenStore(user_id=st.user_id)
        redirect_to = st.redirect_to

    try:
        cred = await base.oauth.exchange_code(code)
        await store.set(cred.tenant_id, cred)
    except AppError as e:
        logger.error("authorization failed: %s", e.message)
        return RedirectResponse(url=_back(redirect_to, auth="error"))

    return RedirectResponse(url=_back(
        redirect_to,
        auth="success",
        tenantId=cred.tenant_id,
        companyId=cred.company_id,
        locationId=cred.location_id,
    ))


# ---------------------------------------------------------------- manual tokens

class TokenPayload(BaseModel):
    tenantId: str
    accessToken: str
    refreshToken: Optional[str] = None
    companyId: Optional[str] = None
    name: Optional[str] = None


@router.post("/tokens")
async def save_token(
    payload: TokenPayload,
    store: Annotated[TokenStore, Depends(get_token_store)],
):
    """Private integration tokens (or any token obtained out of band)."""
    cred = Credential(
        tenant_id=payload.tenantId,
        access_token=payload.accessToken,
        refresh_token=payload.refreshToken,
        company_id=payload.companyId,
        location_id=payload.tenantId,
        name=payload.name,
    )
    await store.set(payload.tenantId, cred)
    return {"success": True, "tenantId": payload.tenantId}


@router.delete("/tokens/{tenant_id}")
async def delete_token(
    tenant_id: str,
    store: Annotated[TokenStore, Depends(get_token_store)],
):
    if not await store.delete(tenant_id):
        raise NotFound(f"No token stored for {tenant_id}")
    return {"success": True}


# ---------------------------------------------------------------- SSO

class SSOPayload(BaseModel):
    payload: str


@router.post("/sso/decrypt")
async def sso_decrypt(body: SSOPayload):
    return {"success": True, "user": decrypt_sso_payload(body.payload, ghl_config()["sso_key"])}
