# helpers/ghl_oauth.py
import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from helpers.errors import BadRequest, UpstreamError
from helpers.ghl_config import ghl_config
from helpers.token_store import Credential

logger = logging.getLogger("oauth")


def build_install_url(state: Optional[str] = None) -> str:
    cfg = ghl_config()
    params = {
        "response_type": "code",
        "redirect_uri": cfg["redirect_uri"],
        "client_id": cfg["client_id"],
        "scope": cfg["scope"],
    }
    if state:
        params["state"] = state
    return f'{cfg["install_base"]}{cfg["auth_path"]}?{urlencode(params)}'


def decode_token_payload(access_token: str) -> Dict[str, Any]:
    """
    Read the claims of a GHL access token WITHOUT verifying its signature.
    Only used to route the token to a tenant right after it came back from the token endpoint.
    """
    parts = (access_token or "").split(".")
    if len(parts) < 2:
        raise BadRequest("Access token is not a JWT")
    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(segment.encode("ascii")))
    except (binascii.Error, ValueError, UnicodeDecodeError):
        raise BadRequest("Access token payload is not valid JSON")
    if not isinstance(payload, dict):
        raise BadRequest("Access token payload is not an object")
    return payload


def tenant_from_token(access_token: str, body: Optional[Dict[str, Any]] = None) -> str:
    body = body or {}
    try:
        payload = decode_token_payload(access_token)
    except BadRequest:
        payload = {}
    for source in (payload, body):
        for key in ("locationId", "companyId"):
            if source.get(key):
                return str(source[key])
    raise BadRequest("Could not find a locationId or companyId for this token")


class GHLOAuth:
    """Token endpoint calls. Both grants are single unauthenticated form POSTs."""

    def __init__(self, http: Optional[httpx.AsyncClient] = None):
        cfg = ghl_config()
        self.http = http or httpx.AsyncClient(timeout=cfg["timeout"])

    async def _post_token(self, data: Dict[str, Any]) -> Dict[str, Any]:
        cfg = ghl_config()
        payload = {
            "client_id": cfg["client_id"],
            "client_secret": cfg["client_secret"],
            **data,
        }
        try:
            r = await self.http.post(
                cfg["token_url"],
                data=payload,
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException:
            raise UpstreamError(504, "Token endpoint timed out")
        except httpx.HTTPError as e:
            raise UpstreamError(502, f"Token endpoint unreachable: {e}")
        if not r.is_success:
            logger.error("token grant=%s failed: %s %s", data.get("grant_type"), r.status_code, r.text[:300])
            raise UpstreamError(r.status_code, f"Token request failed ({data.get('grant_type')})")
        try:
            j = r.json()
        except ValueError:
            logger.error("token grant=%s returned a non-JSON body: %s", data.get("grant_type"), r.text[:300])
            raise UpstreamError(502, "Token endpoint returned a non-JSON body")
        if not isinstance(j, dict) or not j.get("access_token"):
            raise UpstreamError(502, "Token endpoint returned no access_token")
        return j

    async def exchange_code(self, code: str) -> Credential:
        cfg = ghl_config()
        j = await self._post_token({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": cfg["redirect_uri"],
        })
        tenant_id = tenant_from_token(j["access_token"], j)
        logger.info("oauth code exchanged tenant=%s user_type=%s", tenant_id, j.get("userType"))
        return Credential.from_token_response(tenant_id, j)

    async def refresh(self, credential: Credential) -> Credential:
        data = {
            "grant_type": "refresh_token",
            "refresh_token": credential.refresh_token,
        }
        if credential.user_type:
            data["user_type"] = credential.user_type
        j = await self._post_token(data)
        logger.info("token refreshed tenant=%s", credential.tenant_id)
        return Credential.from_token_response(credential.tenant_id, j, previous=credential)
