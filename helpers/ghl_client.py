# helpers/ghl_client.py
"""
Authenticated calls to the GHL REST API.

One retry path only: a 401 on a credential that has a refresh_token triggers a refresh,
the refreshed credential is stored, and the original call is replayed once.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from helpers.errors import NotAuthenticated, UpstreamError
from helpers.ghl_config import ghl_config
from helpers.ghl_oauth import GHLOAuth
from helpers.token_store import Credential, TokenStore

logger = logging.getLogger("ghl")


def _error_message(r: httpx.Response) -> str:
    try:
        j = r.json()
    except ValueError:
        return r.text[:300] or f"GHL request failed with status {r.status_code}"
    if isinstance(j, dict):
        msg = j.get("message") or j.get("msg") or j.get("error")
        if isinstance(msg, list):
            msg = "; ".join(str(m) for m in msg)
        if msg:
            return str(msg)
    return f"GHL request failed with status {r.status_code}"


class GHLClient:
    def __init__(
        self,
        store: TokenStore,
        oauth: Optional[GHLOAuth] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        cfg = ghl_config()
        self.store = store
        self.api_domain = cfg["api_domain"]
        self.api_version = cfg["api_version"]
        self.http = http or httpx.AsyncClient(timeout=cfg["timeout"])
        self.oauth = oauth or GHLOAuth(self.http)
        self._refresh_locks: Dict[str, asyncio.Lock] = {}

    def with_store(self, store: TokenStore) -> "GHLClient":
        """Same connection pool and refresh locks, different credential scope."""
        c = GHLClient.__new__(GHLClient)
        c.store = store
        c.api_domain = self.api_domain
        c.api_version = self.api_version
        c.http = self.http
        c.oauth = self.oauth
        c._refresh_locks = self._refresh_locks
        return c

    def _headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Version": self.api_version,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _send(
        self,
        method: str,
        path: str,
        access_token: str,
        body: Optional[Dict[str, Any]],
        params: Optional[Dict[str, Any]],
    ) -> httpx.Response:
        try:
            return await self.http.request(
                method,
                f"{self.api_domain}{path}",
                headers=self._headers(access_token),
                json=body,
                params=params,
            )
        except httpx.TimeoutException:
            raise UpstreamError(504, f"GHL {method} {path} timed out")
        except httpx.HTTPError as e:
            raise UpstreamError(502, f"GHL {method} {path} failed: {e}")

    async def _refreshed(self, tenant_id: str, stale: Credential) -> Credential:
        lock = self._refresh_locks.setdefault(tenant_id, asyncio.Lock())
        async with lock:
            current = await self.store.get(tenant_id)
            # somebody else already refreshed while we waited
            if current and current.access_token != stale.access_token:
                return current
            fresh = await self.oauth.refresh(current or stale)
            await self.store.set(tenant_id, fresh)
            return fresh

    async def call(
        self,
        method: str,
        path: str,
        tenant_id: Optional[str],
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        cred = await self.store.get(tenant_id) if tenant_id else None
        if not cred:
            raise NotAuthenticated(f"No token found for tenant {tenant_id}")

        method = method.upper()
        r = await self._send(method, path, cred.access_token, body, params)

        if r.status_code == 401 and cred.refresh_token:
            logger.info("401 from GHL, refreshing tenant=%s path=%s", tenant_id, path)
            try:
                cred = await self._refreshed(tenant_id, cred)
            except UpstreamError:
                logger.exception("refresh failed tenant=%s", tenant_id)
                raise
            r = await self._send(method, path, cred.access_token, body, params)

        if not r.is_success:
            logger.error("GHL %s %s -> %s %s", method, path, r.status_code, r.text[:300])
            raise UpstreamError(r.status_code, _error_message(r))

        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError:
            return {"raw": r.text}

    # -- custom values ------------------------------------------------------

    async def list_custom_values(self, tenant_id: str, location_id: str) -> List[Dict[str, Any]]:
        j = await self.call("GET", f"/locations/{location_id}/customValues", tenant_id)
        return j.get("customValues") or []

    async def create_custom_value(self, tenant_id: str, location_id: str, data: Dict[str, Any]) -> Any:
        return await self.call("POST", f"/locations/{location_id}/customValues", tenant_id, data)

    async def update_custom_value(self, tenant_id: str, location_id: str, custom_value_id: str, data: Dict[str, Any]) -> Any:
        return await self.call("PUT", f"/locations/{location_id}/customValues/{custom_value_id}", tenant_id, data)

    async def delete_custom_value(self, tenant_id: str, location_id: str, custom_value_id: str) -> Any:
        return await self.call("DELETE", f"/locations/{location_id}/customValues/{custom_value_id}", tenant_id)

    # -- custom fields ------------------------------------------------------

    async def list_custom_fields(self, tenant_id: str, location_id: str) -> List[Dict[str, Any]]:
        j = await self.call("GET", f"/locations/{location_id}/customFields", tenant_id)
        return j.get("customFields") or []

    async def create_custom_field(self, tenant_id: str, location_id: str, data: Dict[str, Any]) -> Any:
        return await self.call("POST", f"/locations/{location_id}/customFields", tenant_id, data)

    async def update_custom_field(self, tenant_id: str, location_id: str, custom_field_id: str, data: Dict[str, Any]) -> Any:
        return await self.call("PUT", f"/locations/{location_id}/customFields/{custom_field_id}", tenant_id, data)

    async def delete_custom_field(self, tenant_id: str, location_id: str, custom_field_id: str) -> Any:
        return await self.call("DELETE", f"/locations/{location_id}/customFields/{custom_field_id}", tenant_id)

    # -- locations ----------------------------------------------------------

    async def list_locations(self, company_id: str) -> Any:
        return await self.call("GET", f"/companies/{company_id}/locations", company_id)

    async def aclose(self) -> None:
        await self.http.aclose()
