"""HTTP routes for authentication and account administration."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field

from schemas import Account as AccountOut, Envelope, ListEnvelope, Session

from ..domain.account import ADMIN_ROLES, Role
from ..domain.contracts import CreateAccountInput, UpdateAccountInput, UpdateProfileInput
from ..domain.service import AccountService
from ..security.authorization import AuthorizationContext, EntityKind
from .dependencies import get_account_service, require

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    phone: str | None = Field(default=None, max_length=20)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class CreateUserRequest(BaseModel):
    """Payload accepted when a system admin registers an account."""

    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    role: Role
    phone: str | None = Field(default=None, max_length=20)
    real_estate_id: int | None = Field(default=None, ge=1)


class RegisterRequest(BaseModel):
    """Self-service sign-up; only seller and client roles are accepted."""

    email: EmailStr
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    role: Role
    phone: str | None = Field(default=None, max_length=20)
    real_estate_id: int | None = Field(default=None, ge=1)


class UpdateUserRequest(BaseModel):
    first_name: str | None = Field(default=None, min_length=2, max_length=50)
    last_name: str | None = Field(default=None, min_length=2, max_length=50)
    phone: str | None = Field(default=None, max_length=20)
    active: bool | None = None
    real_estate_id: int | None = Field(default=None, ge=1)


def _accounts(items) -> list[AccountOut]:
    return [AccountOut.model_validate(item) for item in items]


@router.post("/auth/login", response_model=Envelope[Session])
async def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_account_service),
) -> Envelope[Session]:
    result = await service.login(payload.email, payload.password)
    session = Session(
        token=result.token,
        expires_in=result.expires_in,
        user=AccountOut.model_validate(result.account),
    )
    return Envelope[Session](message="Login successful", data=session)


@router.get("/auth/profile", response_model=Envelope[AccountOut])
async def get_profile(
    ctx: AuthorizationContext = Depends(require()),
    service: AccountService = Depends(get_account_service),
) -> Envelope[AccountOut]:
    account = await service.get_profile(ctx.account_id)
    return Envelope[AccountOut](message="Profile retrieved successfully", data=AccountOut.model_validate(account))


@router.put("/auth/profile", response_model=Envelope[AccountOut])
async def update_profile(
    payload: UpdateProfileRequest,
    ctx: AuthorizationContext = Depends(require()),
    service: AccountService = Depends(get_account_service),
) -> Envelope[AccountOut]:
    account = await service.update_profile(
        ctx.account_id,
        UpdateProfileInput(first_name=payload.first_name, last_name=payload.last_name, phone=payload.phone),
    )
    return Envelope[AccountOut](message="Profile updated successfully", data=AccountOut.model_validate(account))


@router.put("/auth/change-password", response_model=Envelope[None])
async def change_password(
    payload: ChangePasswordRequest,
    ctx: AuthorizationContext = Depends(require()),
    service: AccountService = Depends(get_account_service),
) -> Envelope[None]:
    await service.change_password(ctx.account_id, payload.current_password, payload.new_password)
    return Envelope[None](message="Password changed successfully")


@router.post("/auth/logout", response_model=Envelope[None])
async def logout(ctx: AuthorizationContext = Depends(require())) -> Envelope[None]:
    # Tokens are stateless; the client discards its copy.
    logger.info("account %s logged out", ctx.account_id)
    return Envelope[None](message="Logout successful")


@router.get("/auth/verify", response_model=Envelope[AccountOut])
async def verify_token(ctx: AuthorizationContext = Depends(require())) -> Envelope[AccountOut]:
    return Envelope[AccountOut](message="Token is valid", data=AccountOut.model_validate(ctx.account))


@router.get("/users", response_model=ListEnvelope[AccountOut])
async def list_users(
    role: Role | None = Query(default=None),
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: AccountService = Depends(get_account_service),
) -> ListEnvelope[AccountOut]:
    accounts = await service.list_accounts(role)
    return ListEnvelope[AccountOut].of("Users retrieved successfully", _accounts(accounts))


@router.post("/users", response_model=Envelope[AccountOut], status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: CreateUserRequest,
    _: AuthorizationContext = Depends(require(Role.system_admin)),
    service: AccountService = Depends(get_account_service),
) -> Envelope[AccountOut]:
    account = await service.register(
        CreateAccountInput(
            email=payload.email,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=payload.role,
            phone=payload.phone,
            real_estate_id=payload.real_estate_id,
        )
    )
    return Envelope[AccountOut](message="User registered successfully", data=AccountOut.model_validate(account))


@router.put("/users/{user_id}/deactivate", response_model=Envelope[AccountOut])
async def deactivate_user(
    user_id: int,
    ctx: AuthorizationContext = Depends(require(Role.system_admin)),
    service: AccountService = Depends(get_account_service),
) -> Envelope[AccountOut]:
    account = await service.deactivate(ctx.account, user_id)
    return Envelope[AccountOut](message="User deactivated successfully", data=AccountOut.model_validate(account))


@router.post("/users/register", response_model=Envelope[AccountOut], status_code=status.HTTP_201_CREATED)
async def register_user(
    payload: RegisterRequest,
    service: AccountService = Depends(get_account_service),
) -> Envelope[AccountOut]:
    account = await service.register_self(CreateAccountInput(**payload.model_dump()))
    return Envelope[AccountOut](message="User registered successfully", data=AccountOut.model_validate(account))


@router.get("/users/real-estate/{real_estate_id}/available-sellers", response_model=ListEnvelope[AccountOut])
async def available_sellers(
    real_estate_id: int,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.real_estate)),
    service: AccountService = Depends(get_account_service),
) -> ListEnvelope[AccountOut]:
    accounts = await service.available_sellers(real_estate_id)
    return ListEnvelope[AccountOut].of("Available sellers retrieved successfully", _accounts(accounts))


@router.get("/users/real-estate/{real_estate_id}/available-clients", response_model=ListEnvelope[AccountOut])
async def available_clients(
    real_estate_id: int,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES, scope=EntityKind.real_estate)),
    service: AccountService = Depends(get_account_service),
) -> ListEnvelope[AccountOut]:
    accounts = await service.available_clients(real_estate_id)
    return ListEnvelope[AccountOut].of("Available clients retrieved successfully", _accounts(accounts))


@router.get("/users/{user_id}", response_model=Envelope[AccountOut])
async def get_user(
    user_id: int,
    _: AuthorizationContext = Depends(require(*ADMIN_ROLES)),
    service: AccountService = Depends(get_account_service),
) -> Envelope[AccountOut]:
    account = await service.get_profile(user_id)
    return Envelope[AccountOut](message="User retrieved successfully", data=AccountOut.model_validate(account))


@router.put("/users/{user_id}", response_model=Envelope[AccountOut])
async def update_user(
    user_id: int,
    payload: UpdateUserRequest,
    ctx: AuthorizationContext = Depends(require(Role.system_admin)),
    service: AccountService = Depends(get_account_service),
) -> Envelope[AccountOut]:
    account = await service.update_account(ctx.account, user_id, UpdateAccountInput(**payload.model_dump()))
    return Envelope[AccountOut](message="User updated successfully", data=AccountOut.model_validate(account))
