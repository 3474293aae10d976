"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.authorization import Capability, Role, has_capability
from hrms.config import Settings
from hrms.exceptions import ForbiddenError
from hrms.security import InvalidAccessTokenError, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


class InsufficientRoleError(ForbiddenError):
    code = "INSUFFICIENT_ROLE"

    def __init__(self, capability: Capability):
        self.capability = capability
        super().__init__("Access denied: insufficient permissions")


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of a request."""

    username: str
    roles: frozenset[Role]

    def can(self, capability: Capability) -> bool:
        return has_capability(self.roles, capability)


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency.

    Routes commit explicitly; anything left uncommitted is rolled back when
    the session closes.
    """
    async with request.app.state.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    settings: Annotated[Settings, Depends(get_settings_dep)],
) -> Principal:
    """Verify the bearer token on the request."""
    if credentials is None or not credentials.credentials:
        raise InvalidAccessTokenError("Authentication required", code="UNAUTHORIZED")
    claims = decode_access_token(credentials.credentials, settings)
    return Principal(username=claims.username, roles=claims.roles)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_settings_dep)]
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def require(capability: Capability) -> Callable[..., Awaitable[Principal]]:
    """Dependency factory that admits only principals holding ``capability``."""

    async def guard(principal: CurrentPrincipal) -> Principal:
        if not principal.can(capability):
            raise InsufficientRoleError(capability)
        return principal

    return guard
