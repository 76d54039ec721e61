from collections.abc import Callable
from typing import Any

import pytest

from replset.replica_set import MemoryReplSet, has_primary
from replset.tests.fakes import FakeAdmin, FakeTransport
from shared.types.errors import ElectionTimeoutError
from shared.types.replset import ReplSetState


@pytest.mark.parametrize(
    "status,expected",
    [
        ({"isWritablePrimary": True}, True),
        ({"ismaster": True}, True),
        ({"isWritablePrimary": False, "primary": "127.0.0.1:27017"}, True),
        ({"isWritablePrimary": False, "secondary": True}, False),
        ({"primary": ""}, False),
        ({}, False),
    ],
)
def test_has_primary(status: dict[str, Any], expected: bool) -> None:
    assert has_primary(status) is expected


class TestWaitForPrimary:
    @pytest.mark.asyncio
    async def test_no_admin_connection_returns_false(
        self,
        make_replset: Callable[..., MemoryReplSet],
        admin: FakeAdmin,
    ) -> None:
        replset = make_replset()

        assert await replset.wait_for_primary() is False
        assert admin.commands == []

    @pytest.mark.asyncio
    async def test_immediate_primary_does_not_sleep(
        self,
        make_replset: Callable[..., MemoryReplSet],
        admin: FakeAdmin,
        no_sleep: list[float],
    ) -> None:
        replset = make_replset()
        replset._admin = admin

        assert await replset.wait_for_primary() is True
        assert admin.hello_calls == 1
        assert no_sleep == []

    @pytest.mark.asyncio
    async def test_primary_after_a_few_polls(
        self,
        make_replset: Callable[..., MemoryReplSet],
        no_sleep: list[float],
    ) -> None:
        admin = FakeAdmin(primary_after=2)
        replset = make_replset()
        replset._admin = admin

        assert await replset.wait_for_primary(5000) is True
        assert admin.hello_calls == 3
        assert no_sleep == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_timeout_after_budget_is_spent(
        self,
        make_replset: Callable[..., MemoryReplSet],
        no_sleep: list[float],
    ) -> None:
        admin = FakeAdmin(primary_after=None)
        replset = make_replset()
        replset._admin = admin

        with pytest.raises(ElectionTimeoutError, match="Timeout of 1200ms expired"):
            await replset.wait_for_primary(1200)

        # 1200 -> 700 -> 200 -> exhausted
        assert admin.hello_calls == 3
        assert no_sleep == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_election_timeout_during_start_closes_connection(
        self,
        make_replset: Callable[..., MemoryReplSet],
        transport: FakeTransport,
        admin: FakeAdmin,
        no_sleep: list[float],
    ) -> None:
        admin.primary_after = None
        replset = make_replset({"replSet": {"count": 2}})

        with pytest.raises(ElectionTimeoutError):
            await replset.start()

        assert admin.hello_calls == 60
        assert len(no_sleep) == 59
        assert transport.connections[0].closed
        assert replset.state == ReplSetState.initializing

        await replset.stop()
        assert replset.state == ReplSetState.stopped
