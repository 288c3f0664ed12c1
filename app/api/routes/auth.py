from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.accounts import AccountService, AuthResult, Credentials, Registration
from app.api.routes.tickets import UserSummaryResponse
from app.dependencies.auth import CurrentUser, get_account_service

router = APIRouter(prefix="/auth", tags=["auth"])

AccountServiceDep = Annotated[AccountService, Depends(get_account_service)]


class AuthResponse(BaseModel):
    user: UserSummaryResponse
    token: str


def _to_auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(user=UserSummaryResponse.model_validate(result.user), token=result.token)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: Registration, accounts: AccountServiceDep) -> AuthResponse:
    result = await accounts.register(payload)
    return _to_auth_response(result)


@router.post("/login", response_model=AuthResponse)
async def login(payload: Credentials, accounts: AccountServiceDep) -> AuthResponse:
    result = await accounts.login(payload)
    return _to_auth_response(result)


@router.get("/me", response_model=UserSummaryResponse)
async def me(user: CurrentUser) -> UserSummaryResponse:
    return UserSummaryResponse.model_validate(user)
