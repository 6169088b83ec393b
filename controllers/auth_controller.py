from fastapi import APIRouter, HTTPException, Depends
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError
from pydantic import BaseModel, EmailStr
from typing import Annotated, Optional

from models.auth import User
from models.crm import Location
from helpers.ai_generator import SUPPORTED_PROVIDERS
from helpers.token_helper import generate_user_token, get_current_user

auth_router = APIRouter()
ph = PasswordHasher()

# ////////////////////////////  Schemas  /////////////////////////////////////////////////

class SignupPayload(BaseModel):
    name: str
    email: EmailStr
    password: str

class LoginPayload(BaseModel):
    email: str
    password: str

class UpdateProfilePayload(BaseModel):
    name: Optional[str] = None
    password: Optional[str] = None
    ai_provider: Optional[str] = None
    ai_api_key: Optional[str] = None
    ai_model: Optional[str] = None


def _mask(key: Optional[str]) -> Optional[str]:
    if not key:
        return None
    return f"...{key[-4:]}" if len(key) > 4 else "****"


async def _profile(user: User) -> dict:
    locations = await Location.filter(user_id=user.id).order_by("-updated_at")
    return {
        "user_id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "ai_provider": user.ai_provider,
        "ai_model": user.ai_model,
        "ai_api_key": _mask(user.ai_api_key),
        "locations": [
            {
                "tenantId": loc.location_id,
                "companyId": loc.company_id,
                "name": loc.name,
                "token_type": loc.token_type.value if loc.token_type else None,
                "expires_at": loc.expires_at,
            }
            for loc in locations
        ],
    }

# ////////////////////////////  Routes  /////////////////////////////////////////////////

@auth_router.post('/auth/signup')
async def signup(payload: SignupPayload):
    if await User.filter(email=payload.email).exists():
        raise HTTPException(status_code=400, detail="User already exists")
    if len(payload.password) < 8:
        raise HTTPException(status_code=400, detail="Password must be at least 8 characters")

    user = await User.create(
        name=payload.name,
        email=payload.email,
        password=ph.hash(payload.password),
    )
    return {
        "success": True,
        "token": generate_user_token({"id": user.id}),
        "user": {"user_id": user.id, "name": user.name, "email": user.email, "role": user.role},
    }


@auth_router.post("/auth/signin")
async def signin(data: LoginPayload):
    user = await User.filter(email=data.email).first()
    if not user:
        raise HTTPException(status_code=400, detail="User Not found")
    try:
        ph.verify(user.password, data.password)
    except (VerificationError, InvalidHashError):
        raise HTTPException(status_code=400, detail="Invalid Credentials.")

    if ph.check_needs_rehash(user.password):
        user.password = ph.hash(data.password)
        await user.save(update_fields=["password"])

    return {
        "success": True,
        "token": generate_user_token({"id": user.id}),
        "user": {"user_id": user.id, "name": user.name, "email": user.email, "role": user.role},
        "detail": "Login Successfully",
    }


@auth_router.get("/profile")
async def get_profile(user: Annotated[User, Depends(get_current_user)]):
    return await _profile(user)


@auth_router.post("/profile")
async def update_profile(
    payload: UpdateProfilePayload,
    user: Annotated[User, Depends(get_current_user)],
):
    data = payload.model_dump(exclude_unset=True)

    if "ai_provider" in data:
        provider = (data["ai_provider"] or "").lower() or None
        if provider and provider not in SUPPORTED_PROVIDERS:
            raise HTTPException(
                status_code=400,
                detail=f"ai_provider must be one of {', '.join(SUPPORTED_PROVIDERS)}",
            )
        user.ai_provider = provider
    if "ai_api_key" in data:
        user.ai_api_key = data["ai_api_key"] or None
    if "ai_model" in data:
        user.ai_model = data["ai_model"] or None
    if data.get("name"):
        user.name = data["name"]
    if data.get("password"):
        if len(data["password"]) < 8:
            raise HTTPException(status_code=400, detail="Password must be at least 8 characters")
        user.password = ph.hash(data["password"])

    await user.save()
    return {"success": True, "detail": "Profile updated", "profile": await _profile(user)}
