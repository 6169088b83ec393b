# helpers/deps.py
from typing import Annotated, Optional

from fastapi import Depends, Request

from helpers.ghl_client import GHLClient
from helpers.token_helper import get_optional_user
from helpers.token_store import DatabaseTokenStore, TokenStore
from models.auth import User


def get_base_client(request: Request) -> GHLClient:
    return request.app.state.ghl_client


def get_token_store(
    request: Request,
    user: Annotated[Optional[User], Depends(get_optional_user)],
) -> TokenStore:
    """Signed-in users get their own `locations` rows; anonymous callers the process default store."""
    if user is not None:
        return DatabaseTokenStore(user_id=user.id)
    return request.app.state.token_store


def get_ghl_client(
    base: Annotated[GHLClient, Depends(get_base_client)],
    store: Annotated[TokenStore, Depends(get_token_store)],
) -> GHLClient:
    if store is base.store:
        return base
    return base.with_store(store)


def client_for_user(base: GHLClient, user_id: Optional[int]) -> GHLClient:
    """For background work (scheduler, wizard push) that runs outside a request."""
    return base.with_store(DatabaseTokenStore(user_id=user_id))
