from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

from shared.types.replset import InstanceProps


class InstanceHandle(Protocol):
    """What the replica set controller needs from one single-node server."""

    props: InstanceProps

    async def start(self) -> None: ...

    async def stop(self) -> bool: ...

    async def get_port(self) -> int: ...

    async def get_uri(self, other_db: str | None = None) -> str: ...

    def kill_sync(self) -> None: ...


class AdminCommands(Protocol):
    async def command(self, document: Mapping[str, Any]) -> Mapping[str, Any]: ...


class AdminConnection(Protocol):
    def get_admin(self) -> AdminCommands: ...

    async def close(self) -> None: ...


InstanceFactory = Callable[[InstanceProps], InstanceHandle]
TransportFactory = Callable[[str], Awaitable[AdminConnection]]
