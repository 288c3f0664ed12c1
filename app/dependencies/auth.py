from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.accounts import AccountService
from app.core.errors import AuthenticationError
from app.tickets.models import UserSummary
from app.tickets.policy import AuthorizationPolicy, TicketOperation

MISSING_TOKEN = "No authorization token provided"

bearer_scheme = HTTPBearer(auto_error=False)


def get_account_service(request: Request) -> AccountService:
    service = getattr(request.app.state, "account_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Account service is not configured")
    return service


def get_policy(request: Request) -> AuthorizationPolicy:
    policy = getattr(request.app.state, "policy", None)
    if policy is None:
        raise HTTPException(status_code=503, detail="Authorization policy is not configured")
    return policy


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> UserSummary:
    """Resolve the bearer token to the stored user, once per request."""

    cached = getattr(request.state, "user", None)
    if cached is not None:
        return cached
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(MISSING_TOKEN)

    user = await accounts.current_user(credentials.credentials)
    request.state.user = user
    return user


CurrentUser = Annotated[UserSummary, Depends(get_current_user)]


def permission_required(operation: TicketOperation) -> Callable[..., UserSummary]:
    """Dependency factory ensuring the current user's role may perform ``operation``."""

    async def dependency(
        user: CurrentUser,
        policy: Annotated[AuthorizationPolicy, Depends(get_policy)],
    ) -> UserSummary:
        policy.authorize(user.role, operation)
        return user

    return dependency
