import asyncio
import logging
from collections.abc import Callable
from typing import Any

import pytest

from replset.replica_set import MemoryReplSet
from replset.tests.fakes import FakeAdmin, FakeInstance, FakeTransport
from shared.types.replset import InstanceProps


@pytest.fixture
def test_logger() -> logging.Logger:
    logger = logging.getLogger("test_replset")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def admin() -> FakeAdmin:
    return FakeAdmin()


@pytest.fixture
def transport(admin: FakeAdmin) -> FakeTransport:
    return FakeTransport(admin)


@pytest.fixture
def created_instances() -> list[FakeInstance]:
    return []


@pytest.fixture
def instance_factory(created_instances: list[FakeInstance]) -> Callable[[InstanceProps], FakeInstance]:
    def _factory(props: InstanceProps) -> FakeInstance:
        instance = FakeInstance(props)
        created_instances.append(instance)
        return instance

    return _factory


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace asyncio.sleep with a yield and record the requested delays."""
    real_sleep = asyncio.sleep
    delays: list[float] = []

    async def fake_sleep(delay: float, result: Any = None) -> Any:
        delays.append(delay)
        await real_sleep(0)
        return result

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays


@pytest.fixture
def make_replset(
    test_logger: logging.Logger,
    instance_factory: Callable[[InstanceProps], FakeInstance],
    transport: FakeTransport,
) -> Callable[..., MemoryReplSet]:
    def _make_replset(opts: dict[str, Any] | None = None) -> MemoryReplSet:
        return MemoryReplSet(
            {"autoStart": False, **(opts or {})},
            logger=test_logger,
            instance_factory=instance_factory,
            transport_factory=transport.connect,
        )

    return _make_replset
