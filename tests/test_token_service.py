"""Tests for token issuance and the refresh token lifecycle."""

from dataclasses import replace
from datetime import timedelta

import pytest
from sqlalchemy import select, update

from hrms.authorization import Role
from hrms.models import RefreshToken, utcnow
from hrms.security import decode_access_token
from hrms.services.token_service import (
    AccountInactiveError,
    AuthenticationFailedError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenRevokedError,
    TokenService,
)

pytestmark = pytest.mark.asyncio

PASSWORD = "password123"


async def _stored(session_factory, token: str) -> RefreshToken | None:
    async with session_factory() as s:
        result = await s.execute(select(RefreshToken).where(RefreshToken.token == token))
        return result.unique().scalar_one_or_none()


class TestIssueTokenPair:
    """Test login."""

    async def test_issues_access_and_refresh_token(self, session, settings, org):
        service = TokenService(session, settings)
        pair = await service.issue_token_pair("manager", PASSWORD)
        await session.commit()

        claims = decode_access_token(pair.access_token, settings)
        assert claims.username == "manager"
        assert claims.roles == frozenset({Role.MANAGER})
        assert pair.expires_in == 1800
        assert pair.token_type == "Bearer"
        assert pair.employee.id == org.manager
        assert await service.count_valid(org.manager) == 1

    async def test_refresh_token_expires_after_ttl(self, session, settings, org):
        before = utcnow()
        pair = await TokenService(session, settings).issue_token_pair("alice", PASSWORD)

        result = await session.execute(
            select(RefreshToken).where(RefreshToken.token == pair.refresh_token)
        )
        stored = result.unique().scalar_one()
        assert stored.revoked is False
        assert stored.expiry_date - before >= timedelta(days=7) - timedelta(seconds=5)
        assert stored.expiry_date - before <= timedelta(days=7) + timedelta(seconds=5)

    async def test_wrong_password(self, session, settings, org):
        with pytest.raises(AuthenticationFailedError):
            await TokenService(session, settings).issue_token_pair("alice", "nope")

    async def test_unknown_user(self, session, settings, org):
        with pytest.raises(AuthenticationFailedError):
            await TokenService(session, settings).issue_token_pair("mallory", PASSWORD)

    async def test_inactive_account(self, session, settings, org):
        with pytest.raises(AccountInactiveError):
            await TokenService(session, settings).issue_token_pair("eve", PASSWORD)


class TestRefresh:
    """Test refresh token exchange."""

    async def test_rotation_revokes_presented_token(self, session, session_factory, settings, org):
        service = TokenService(session, settings)
        first = await service.issue_token_pair("alice", PASSWORD)
        await session.commit()

        second = await service.refresh(first.refresh_token)
        await session.commit()

        assert second.refresh_token != first.refresh_token
        assert decode_access_token(second.access_token, settings).username == "alice"
        assert (await _stored(session_factory, first.refresh_token)).revoked is True
        assert (await _stored(session_factory, second.refresh_token)).revoked is False

    async def test_rotated_token_cannot_be_reused(self, session, settings, org):
        service = TokenService(session, settings)
        first = await service.issue_token_pair("alice", PASSWORD)
        await service.refresh(first.refresh_token)
        await session.commit()

        with pytest.raises(TokenRevokedError):
            await service.refresh(first.refresh_token)

    async def test_without_rotation_same_token_returned(self, session, settings, org):
        service = TokenService(session, replace(settings, refresh_token_rotation=False))
        first = await service.issue_token_pair("alice", PASSWORD)

        second = await service.refresh(first.refresh_token)
        third = await service.refresh(first.refresh_token)

        assert second.refresh_token == first.refresh_token
        assert third.refresh_token == first.refresh_token
        assert await service.count_valid(org.alice) == 1

    async def test_unknown_token(self, session, settings, org):
        with pytest.raises(TokenNotFoundError):
            await TokenService(session, settings).refresh("does-not-exist")

    async def test_expired_token_is_deleted(self, session, session_factory, settings, org):
        service = TokenService(session, settings)
        pair = await service.issue_token_pair("alice", PASSWORD)
        await session.execute(
            update(RefreshToken)
            .where(RefreshToken.token == pair.refresh_token)
            .values(expiry_date=utcnow() - timedelta(minutes=1))
        )
        await session.commit()
        session.expunge_all()

        with pytest.raises(TokenExpiredError) as exc_info:
            await service.refresh(pair.refresh_token)

        assert str(exc_info.value) == "Refresh token has expired. Please login again"
        assert await _stored(session_factory, pair.refresh_token) is None

    async def test_expired_checked_before_revoked(self, session, settings, org):
        service = TokenService(session, settings)
        pair = await service.issue_token_pair("alice", PASSWORD)
        await session.execute(
            update(RefreshToken)
            .where(RefreshToken.token == pair.refresh_token)
            .values(expiry_date=utcnow() - timedelta(minutes=1), revoked=True)
        )
        await session.commit()
        session.expunge_all()

        with pytest.raises(TokenExpiredError):
            await service.refresh(pair.refresh_token)

    async def test_revoked_token(self, session, settings, org):
        service = TokenService(session, settings)
        pair = await service.issue_token_pair("alice", PASSWORD)
        await service.revoke(pair.refresh_token)

        with pytest.raises(TokenRevokedError) as exc_info:
            await service.refresh(pair.refresh_token)
        assert str(exc_info.value) == "Refresh token has been revoked"

    async def test_concurrent_refresh_only_one_wins(self, session_factory, settings, org):
        async with session_factory() as s:
            pair = await TokenService(s, settings).issue_token_pair("alice", PASSWORD)
            await s.commit()

        async with session_factory() as a, session_factory() as b:
            # Both sessions have seen the token as valid
            await a.execute(select(RefreshToken).where(RefreshToken.token == pair.refresh_token))
            await b.execute(select(RefreshToken).where(RefreshToken.token == pair.refresh_token))

            await TokenService(a, settings).refresh(pair.refresh_token)
            await a.commit()

            with pytest.raises(TokenRevokedError):
                await TokenService(b, settings).refresh(pair.refresh_token)
            await b.rollback()

        async with session_factory() as s:
            assert await TokenService(s, settings).count_valid(org.alice) == 1


class TestRevocation:
    """Test logout and maintenance."""

    async def test_revoke_single_token(self, session, settings, org):
        service = TokenService(session, settings)
        first = await service.issue_token_pair("alice", PASSWORD)
        await service.issue_token_pair("alice", PASSWORD)

        await service.revoke(first.refresh_token, owner_username="alice")

        assert await service.count_valid(org.alice) == 1

    async def test_revoke_someone_elses_token(self, session, settings, org):
        service = TokenService(session, settings)
        pair = await service.issue_token_pair("alice", PASSWORD)

        with pytest.raises(TokenNotFoundError):
            await service.revoke(pair.refresh_token, owner_username="bob")

    async def test_revoke_unknown_token(self, session, settings, org):
        with pytest.raises(TokenNotFoundError):
            await TokenService(session, settings).revoke("missing")

    async def test_revoke_all(self, session, settings, org):
        service = TokenService(session, settings)
        for _ in range(3):
            await service.issue_token_pair("alice", PASSWORD)
        await service.issue_token_pair("bob", PASSWORD)

        revoked = await service.revoke_all_for_username("alice")

        assert revoked == 3
        assert await service.count_valid(org.alice) == 0
        assert await service.count_valid(org.bob) == 1

    async def test_purge_expired_and_revoked(self, session, settings, org):
        service = TokenService(session, settings)
        expired = await service.issue_token_pair("alice", PASSWORD)
        revoked = await service.issue_token_pair("alice", PASSWORD)
        await service.issue_token_pair("alice", PASSWORD)

        await session.execute(
            update(RefreshToken)
            .where(RefreshToken.token == expired.refresh_token)
            .values(expiry_date=utcnow() - timedelta(days=1))
        )
        await service.revoke(revoked.refresh_token)

        assert await service.purge_expired() == 1
        assert await service.purge_revoked() == 1
        assert await service.count_valid(org.alice) == 1
