# helpers/token_store.py
"""
Where tenant credentials live.

Handlers never touch a global dict; they receive a TokenStore. Two backends:
  * MemoryTokenStore   - a process-local mapping, lost on restart (single-tenant mode)
  * DatabaseTokenStore - rows in `locations`, scoped to one user (multi-tenant mode)
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from models.crm import Location, TokenType

logger = logging.getLogger("token_store")


class Credential(BaseModel):
    tenant_id: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    company_id: Optional[str] = None
    location_id: Optional[str] = None
    user_type: Optional[str] = None
    scope: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_token_response(cls, tenant_id: str, j: Dict[str, Any], previous: Optional["Credential"] = None) -> "Credential":
        """Build from a GHL /oauth/token body. A refresh that omits refresh_token keeps the old one."""
        try:
            expires_in = int(j.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in) if expires_in else None
        return cls(
            tenant_id=tenant_id,
            access_token=j["access_token"],
            refresh_token=j.get("refresh_token") or (previous.refresh_token if previous else None),
            expires_at=expires_at,
            company_id=j.get("companyId") or (previous.company_id if previous else None),
            location_id=j.get("locationId") or (previous.location_id if previous else None),
            user_type=j.get("userType") or (previous.user_type if previous else None),
            scope=j.get("scope") or (previous.scope if previous else None),
            name=previous.name if previous else None,
        )


class TokenStore:
    async def get(self, tenant_id: str) -> Optional[Credential]:
        raise NotImplementedError

    async def set(self, tenant_id: str, credential: Credential) -> None:
        raise NotImplementedError

    async def delete(self, tenant_id: str) -> bool:
        raise NotImplementedError

    async def list(self) -> List[Credential]:
        raise NotImplementedError


class MemoryTokenStore(TokenStore):
    def __init__(self):
        self._tokens: Dict[str, Credential] = {}

    async def get(self, tenant_id: str) -> Optional[Credential]:
        return self._tokens.get(tenant_id)

    async def set(self, tenant_id: str, credential: Credential) -> None:
        self._tokens[tenant_id] = credential

    async def delete(self, tenant_id: str) -> bool:
        return self._tokens.pop(tenant_id, None) is not None

    async def list(self) -> List[Credential]:
        return list(self._tokens.values())


def _row_to_credential(row: Location) -> Credential:
    return Credential(
        tenant_id=row.location_id,
        access_token=row.access_token,
        refresh_token=row.refresh_token,
        expires_at=row.expires_at,
        company_id=row.company_id,
        location_id=row.location_id,
        user_type=row.user_type,
        scope=row.scope,
        name=row.name,
    )


class DatabaseTokenStore(TokenStore):
    """
    Credentials stored in the `locations` table.
    With user_id set every read/write is limited to that user's rows;
    with user_id=None the store acts on rows that have no owner (anonymous installs).
    """

    def __init__(self, user_id: Optional[int] = None):
        self.user_id = user_id

    def _scope(self):
        if self.user_id is None:
            return Location.filter(user_id__isnull=True)
        return Location.filter(user_id=self.user_id)

    async def get(self, tenant_id: str) -> Optional[Credential]:
        row = await self._scope().filter(location_id=tenant_id).order_by("-updated_at").first()
        return _row_to_credential(row) if row else None

    async def set(self, tenant_id: str, credential: Credential) -> None:
        values = {
            "access_token": credential.access_token,
            "refresh_token": credential.refresh_token,
            "expires_at": credential.expires_at,
            "company_id": credential.company_id,
            "user_type": credential.user_type,
            "scope": credential.scope,
            "token_type": TokenType.OAUTH if credential.refresh_token else TokenType.PRIVATE,
        }
        if credential.name:
            values["name"] = credential.name
        try:
            await self._upsert(tenant_id, values)
        except IntegrityError:
            # a concurrent writer inserted the row first; the unique index makes the retry an update
            await self._upsert(tenant_id, values)
        logger.info("credential stored tenant=%s user=%s", tenant_id, self.user_id)

    async def _upsert(self, tenant_id: str, values: Dict[str, Any]) -> None:
        async with in_transaction() as conn:
            row = await self._scope().filter(location_id=tenant_id).using_db(conn).first()
            if row:
                await row.update_from_dict(values).save(using_db=conn)
            else:
                await Location.create(using_db=conn, user_id=self.user_id, location_id=tenant_id, **values)

    async def delete(self, tenant_id: str) -> bool:
        deleted = await self._scope().filter(location_id=tenant_id).delete()
        return deleted > 0

    async def list(self) -> List[Credential]:
        rows = await self._scope().order_by("created_at").all()
        return [_row_to_credential(r) for r in rows]


def build_default_store(kind: str) -> TokenStore:
    if kind == "memory":
        return MemoryTokenStore()
    return DatabaseTokenStore(user_id=None)
