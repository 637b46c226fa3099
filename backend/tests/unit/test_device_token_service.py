"""Tests for DeviceTokenService: issue, validate, claim, revoke."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from waypoint.core.errors import (
    ConflictError,
    DeviceTokenAlreadyClaimedError,
    UnauthorizedDeviceTokenError,
    ValidationError,
)
from waypoint.core.tokens import hash_secret
from waypoint.models.device_token import DeviceToken
from waypoint.repositories.device_token_repository import DeviceTokenRepository
from waypoint.services.device_token_service import DeviceTokenService

_NOW = datetime(2026, 7, 1, tzinfo=UTC)
_TRACKABLE_ID = "trk-42"
_RAW = "raw-device-secret"


def _token(**overrides) -> DeviceToken:
    fields = {
        "id": 5,
        "trackable_id": _TRACKABLE_ID,
        "device_id": None,
        "token_hash": hash_secret(_RAW),
        "revoked_at": None,
    }
    fields.update(overrides)
    return DeviceToken(**fields)


@pytest.fixture
def mock_db() -> AsyncMock:
    """Mocked AsyncSession; begin_nested() works as an async context manager."""
    db = AsyncMock()
    db.add = MagicMock()
    db.begin_nested = MagicMock(return_value=MagicMock())
    return db


@pytest.fixture
def service(mock_db: AsyncMock) -> DeviceTokenService:
    return DeviceTokenService(mock_db, clock=lambda: _NOW)


@pytest.fixture
def repos():
    with (
        patch.object(DeviceTokenRepository, "create", new_callable=AsyncMock) as create,
        patch.object(
            DeviceTokenRepository, "get_by_token_hash", new_callable=AsyncMock
        ) as get_by_hash,
        patch.object(
            DeviceTokenRepository,
            "revoke_unclaimed_for_trackable",
            new_callable=AsyncMock,
        ) as revoke_unclaimed,
        patch.object(DeviceTokenRepository, "claim", new_callable=AsyncMock) as claim,
        patch.object(
            DeviceTokenRepository, "revoke_for_device", new_callable=AsyncMock
        ) as revoke_for_device,
    ):
        claim.return_value = True
        revoke_unclaimed.return_value = 0
        yield MagicMock(
            create=create,
            get_by_hash=get_by_hash,
            revoke_unclaimed=revoke_unclaimed,
            claim=claim,
            revoke_for_device=revoke_for_device,
        )


class TestIssue:
    """Tests for DeviceTokenService.issue."""

    async def test_revokes_unclaimed_then_inserts(
        self, service: DeviceTokenService, repos: MagicMock
    ):
        order: list[str] = []
        repos.revoke_unclaimed.side_effect = lambda *a, **k: order.append("revoke") or 0
        repos.create.side_effect = lambda *a, **k: order.append("create")

        secret = await service.issue(_TRACKABLE_ID)

        assert order == ["revoke", "create"]
        assert repos.revoke_unclaimed.await_args.args[1] == _TRACKABLE_ID
        assert repos.revoke_unclaimed.await_args.kwargs["now"] == _NOW
        create_kwargs = repos.create.await_args.kwargs
        assert create_kwargs["trackable_id"] == _TRACKABLE_ID
        assert create_kwargs["token_hash"] == hash_secret(secret)

    async def test_concurrent_issue_conflict(
        self, service: DeviceTokenService, repos: MagicMock
    ):
        repos.create.side_effect = IntegrityError("INSERT", {}, Exception("duplicate"))

        with pytest.raises(ConflictError) as exc_info:
            await service.issue(_TRACKABLE_ID)

        assert exc_info.value.status_code == 409


class TestValidate:
    """Tests for DeviceTokenService.validate."""

    async def test_unknown(self, service: DeviceTokenService, repos: MagicMock):
        repos.get_by_hash.return_value = None

        with pytest.raises(UnauthorizedDeviceTokenError) as exc_info:
            await service.validate(_RAW)

        assert exc_info.value.code == "UNAUTHORIZED_DEVICE_TOKEN"

    async def test_revoked(self, service: DeviceTokenService, repos: MagicMock):
        repos.get_by_hash.return_value = _token(revoked_at=_NOW)

        with pytest.raises(UnauthorizedDeviceTokenError):
            await service.validate(_RAW)

    async def test_unclaimed_is_returned(
        self, service: DeviceTokenService, repos: MagicMock
    ):
        token = _token()
        repos.get_by_hash.return_value = token

        assert await service.validate(_RAW) is token
        assert repos.get_by_hash.await_args.args[1] == hash_secret(_RAW)


class TestAssignDeviceToToken:
    """Tests for DeviceTokenService.assign_device_to_token."""

    async def test_claims_unclaimed_token(
        self, service: DeviceTokenService, repos: MagicMock
    ):
        token = _token()

        result = await service.assign_device_to_token(token, "phone-1")

        assert result.device_id == "phone-1"
        repos.claim.assert_awaited_once()
        assert repos.claim.await_args.args[1:] == (5, "phone-1")

    async def test_same_device_again_is_noop(
        self, service: DeviceTokenService, repos: MagicMock
    ):
        token = _token(device_id="phone-1")

        result = await service.assign_device_to_token(token, "phone-1")

        assert result is token
        repos.claim.assert_not_awaited()

    async def test_other_device_is_rejected(
        self, service: DeviceTokenService, repos: MagicMock
    ):
        token = _token(device_id="phone-1")

        with pytest.raises(DeviceTokenAlreadyClaimedError) as exc_info:
            await service.assign_device_to_token(token, "phone-2")

        assert exc_info.value.status_code == 409
        assert token.device_id == "phone-1"
        repos.claim.assert_not_awaited()

    async def test_lost_claim_race_to_other_device(
        self, service: DeviceTokenService, repos: MagicMock, mock_db: AsyncMock
    ):
        token = _token()
        repos.claim.return_value = False

        async def _refresh(obj):
            obj.device_id = "phone-9"

        mock_db.refresh.side_effect = _refresh

        with pytest.raises(DeviceTokenAlreadyClaimedError):
            await service.assign_device_to_token(token, "phone-1")

    async def test_lost_claim_race_to_same_device(
        self, service: DeviceTokenService, repos: MagicMock, mock_db: AsyncMock
    ):
        token = _token()
        repos.claim.return_value = False

        async def _refresh(obj):
            obj.device_id = "phone-1"

        mock_db.refresh.side_effect = _refresh

        result = await service.assign_device_to_token(token, "phone-1")

        assert result.device_id == "phone-1"

    async def test_blank_device_id(self, service: DeviceTokenService, repos: MagicMock):
        with pytest.raises(ValidationError):
            await service.assign_device_to_token(_token(), "   ")


class TestClaim:
    async def test_validates_then_assigns(
        self, service: DeviceTokenService, repos: MagicMock
    ):
        repos.get_by_hash.return_value = _token()

        result = await service.claim(_RAW, "tracker-7")

        assert result.device_id == "tracker-7"

    async def test_revoked_token_cannot_be_claimed(
        self, service: DeviceTokenService, repos: MagicMock
    ):
        repos.get_by_hash.return_value = _token(revoked_at=_NOW)

        with pytest.raises(UnauthorizedDeviceTokenError):
            await service.claim(_RAW, "tracker-7")

        repos.claim.assert_not_awaited()


class TestRevokeForDevice:
    async def test_passes_through_count(
        self, service: DeviceTokenService, repos: MagicMock
    ):
        repos.revoke_for_device.return_value = 1

        assert await service.revoke_for_device(_TRACKABLE_ID, "phone-1") == 1
        assert repos.revoke_for_device.await_args.args[1:] == (_TRACKABLE_ID, "phone-1")
