"""Tests for commitment_tracker.core.permission_gate."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import OTHER_OWNER, OWNER

from commitment_tracker.core.permission_gate import Permission, PermissionGate


@pytest.fixture
def gate(pref_db):
    return PermissionGate(pref_db)


class TestPermissionState:
    def test_starts_default(self, gate):
        assert gate.permission(OWNER) is Permission.DEFAULT
        assert gate.is_granted(OWNER) is False

    def test_resolve_persists(self, gate, pref_db):
        gate.resolve(OWNER, True)
        assert gate.is_granted(OWNER) is True
        assert pref_db.get_permission(OWNER) == "granted"
        # a fresh gate over the same store sees it too
        assert PermissionGate(pref_db).is_granted(OWNER) is True

    def test_owners_are_independent(self, gate):
        gate.resolve(OWNER, True)
        assert gate.permission(OTHER_OWNER) is Permission.DEFAULT

    def test_reset(self, gate):
        gate.resolve(OWNER, False)
        assert gate.permission(OWNER) is Permission.DENIED
        gate.reset(OWNER)
        assert gate.permission(OWNER) is Permission.DEFAULT


class TestRequestPermission:
    @pytest.mark.asyncio
    async def test_already_answered_skips_prompt(self, gate):
        gate.resolve(OWNER, False)
        prompt = AsyncMock()
        result = await gate.request_permission(OWNER, prompt)
        assert result is Permission.DENIED
        prompt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_waits_for_answer(self, gate):
        prompt = AsyncMock()
        task = asyncio.create_task(gate.request_permission(OWNER, prompt))
        await asyncio.sleep(0)
        assert not task.done()
        prompt.assert_awaited_once_with(OWNER)

        gate.resolve(OWNER, True)
        assert await task is Permission.GRANTED

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_prompt(self, gate):
        prompt = AsyncMock()
        first = asyncio.create_task(gate.request_permission(OWNER, prompt))
        await asyncio.sleep(0)
        second = asyncio.create_task(gate.request_permission(OWNER, prompt))
        await asyncio.sleep(0)

        gate.resolve(OWNER, False)
        assert await first is Permission.DENIED
        assert await second is Permission.DENIED
        prompt.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_prompt_clears_pending(self, gate):
        prompt = AsyncMock(side_effect=RuntimeError("send failed"))
        with pytest.raises(RuntimeError):
            await gate.request_permission(OWNER, prompt)

        retry = AsyncMock()
        task = asyncio.create_task(gate.request_permission(OWNER, retry))
        await asyncio.sleep(0)
        retry.assert_awaited_once()
        gate.resolve(OWNER, True)
        assert await task is Permission.GRANTED
