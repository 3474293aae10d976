"""Access token issuance and refresh token lifecycle."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrms.config import Settings
from hrms.database import session_scope
from hrms.exceptions import NotFoundError, UnauthorizedError
from hrms.models import Employee, RefreshToken, utcnow
from hrms.security import create_access_token, generate_refresh_token, verify_password

logger = logging.getLogger(__name__)


class AuthenticationFailedError(UnauthorizedError):
    """Raised for an unknown username or a wrong password."""

    code = "BAD_CREDENTIALS"

    def __init__(self):
        super().__init__("Invalid username or password")


class AccountInactiveError(UnauthorizedError):
    """Raised when a deactivated account tries to authenticate."""

    code = "ACCOUNT_INACTIVE"

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Account {username} is inactive")


class TokenNotFoundError(NotFoundError):
    """Raised when a refresh token is not in storage."""

    code = "REFRESH_TOKEN_NOT_FOUND"

    def __init__(self):
        super().__init__("Refresh token not found")


class TokenExpiredError(UnauthorizedError):
    """Raised when a refresh token is past its expiry date."""

    code = "REFRESH_TOKEN_EXPIRED"

    def __init__(self):
        super().__init__("Refresh token has expired. Please login again")


class TokenRevokedError(UnauthorizedError):
    """Raised when a refresh token has been revoked."""

    code = "REFRESH_TOKEN_REVOKED"

    def __init__(self):
        super().__init__("Refresh token has been revoked")


@dataclass(frozen=True)
class TokenPair:
    """Access token plus the refresh token that accompanies it."""

    access_token: str
    refresh_token: str
    expires_in: int
    employee: Employee
    token_type: str = "Bearer"


class TokenService:
    """Service for minting access tokens and managing refresh tokens.

    Key invariants:
    1. A refresh token is valid iff it is not revoked and not yet expired
    2. An expired token is deleted when it is presented
    3. With rotation enabled, each refresh token can be exchanged once; the
       revoke is a conditional update so concurrent refreshes cannot both win
    """

    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.settings = settings

    async def issue_token_pair(self, username: str, password: str) -> TokenPair:
        """Authenticate credentials and mint a new access/refresh pair.

        Raises:
            AuthenticationFailedError: Unknown username or wrong password
            AccountInactiveError: The account is deactivated
        """
        employee = await self._get_employee_by_username(username)
        if employee is None or not verify_password(password, employee.password_hash):
            logger.warning("Failed login attempt for %s", username)
            raise AuthenticationFailedError()
        if not employee.is_active:
            logger.warning("Login refused for inactive account %s", username)
            raise AccountInactiveError(username)

        refresh_token = await self._create_refresh_token(employee)
        logger.info("Issued token pair for %s", username)
        return self._pair(employee, refresh_token.token)

    async def refresh(self, token: str) -> TokenPair:
        """Exchange a refresh token for a new access token.

        Raises:
            TokenNotFoundError: Token is unknown
            TokenExpiredError: Token is past expiry (the row is deleted)
            TokenRevokedError: Token was revoked, or consumed by a concurrent refresh
            AccountInactiveError: Owner was deactivated after the token was issued
        """
        refresh_token = await self._get_token(token)
        if refresh_token is None:
            raise TokenNotFoundError()

        if refresh_token.is_expired():
            await self.session.delete(refresh_token)
            # The delete must survive the error raised below
            await self.session.commit()
            logger.info("Deleted expired refresh token %d", refresh_token.id)
            raise TokenExpiredError()

        if refresh_token.revoked:
            raise TokenRevokedError()

        employee = refresh_token.employee
        if not employee.is_active:
            raise AccountInactiveError(employee.username)

        if not self.settings.refresh_token_rotation:
            return self._pair(employee, refresh_token.token)

        result = await self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.id == refresh_token.id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning("Refresh token %d consumed concurrently", refresh_token.id)
            raise TokenRevokedError()
        await self.session.refresh(refresh_token, ["revoked"])

        rotated = await self._create_refresh_token(employee)
        logger.info("Rotated refresh token for %s", employee.username)
        return self._pair(employee, rotated.token)

    async def revoke(self, token: str, owner_username: str | None = None) -> None:
        """Revoke a single refresh token.

        When ``owner_username`` is given, tokens belonging to anyone else are
        reported as not found.
        """
        refresh_token = await self._get_token(token)
        if refresh_token is None or (
            owner_username is not None and refresh_token.employee.username != owner_username
        ):
            raise TokenNotFoundError()

        refresh_token.revoked = True
        await self.session.flush()
        logger.info("Revoked refresh token %d", refresh_token.id)

    async def revoke_all(self, employee_id: int) -> int:
        """Revoke every refresh token of an employee. Returns rows affected."""
        result = await self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.employee_id == employee_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        logger.info("Revoked %d refresh tokens for employee %d", result.rowcount, employee_id)
        return result.rowcount

    async def revoke_all_for_username(self, username: str) -> int:
        employee = await self._get_employee_by_username(username)
        if employee is None:
            raise NotFoundError(f"Employee not found: {username}")
        return await self.revoke_all(employee.id)

    async def count_valid(self, employee_id: int, now: datetime | None = None) -> int:
        """Count tokens that are neither revoked nor expired."""
        result = await self.session.execute(
            select(func.count())
            .select_from(RefreshToken)
            .where(
                RefreshToken.employee_id == employee_id,
                RefreshToken.revoked.is_(False),
                RefreshToken.expiry_date > (now or utcnow()),
            )
        )
        return result.scalar_one()

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete all tokens past their expiry date."""
        result = await self.session.execute(
            delete(RefreshToken)
            .where(RefreshToken.expiry_date < (now or utcnow()))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def purge_revoked(self) -> int:
        """Delete all revoked tokens."""
        result = await self.session.execute(
            delete(RefreshToken)
            .where(RefreshToken.revoked.is_(True))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _get_employee_by_username(self, username: str) -> Employee | None:
        result = await self.session.execute(
            select(Employee).where(Employee.username == username)
        )
        return result.scalar_one_or_none()

    async def _get_token(self, token: str) -> RefreshToken | None:
        result = await self.session.execute(
            select(RefreshToken).where(RefreshToken.token == token)
        )
        return result.unique().scalar_one_or_none()

    async def _create_refresh_token(self, employee: Employee) -> RefreshToken:
        refresh_token = RefreshToken(
            token=generate_refresh_token(),
            employee_id=employee.id,
            expiry_date=utcnow() + timedelta(seconds=self.settings.refresh_token_ttl_seconds),
            revoked=False,
        )
        self.session.add(refresh_token)
        await self.session.flush()
        return refresh_token

    def _pair(self, employee: Employee, refresh_token: str) -> TokenPair:
        access_token = create_access_token(
            employee.username, [employee.role_enum], self.settings
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.settings.access_token_ttl_seconds,
            employee=employee,
        )


async def run_token_purge_loop(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    interval_seconds: float,
) -> None:
    """Periodically delete expired and revoked refresh tokens until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with session_scope(session_factory) as session:
                service = TokenService(session, settings)
                expired = await service.purge_expired()
                revoked = await service.purge_revoked()
            logger.info("Purged %d expired and %d revoked refresh tokens", expired, revoked)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Refresh token purge failed")
