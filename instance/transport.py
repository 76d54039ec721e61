from collections.abc import Mapping
from typing import Any

from shared.types.errors import DependencyMissingError


class AdminCommands:
    """Issues commands against the `admin` database of one node."""

    def __init__(self, database: Any):
        self._database = database

    async def command(self, document: Mapping[str, Any]) -> Mapping[str, Any]:
        return await self._database.command(dict(document))


class AdminTransport:
    """
    Short-lived administrative connection to a single mongod.
    Use `AdminTransport.connect` to open one; always `close()` it.
    """

    def __init__(self, client: Any):
        self._client = client

    @classmethod
    async def connect(cls, uri: str, server_selection_timeout_ms: int = 10000) -> "AdminTransport":
        try:
            from pymongo import AsyncMongoClient
        except ImportError as e:
            raise DependencyMissingError(
                "pymongo", "issuing replSetInitiate and checking the replica set state"
            ) from e

        # the target is a lone member that is not part of an initiated set yet
        client = AsyncMongoClient(
            uri,
            directConnection=True,
            serverSelectionTimeoutMS=server_selection_timeout_ms,
        )
        return cls(client)

    def get_admin(self) -> AdminCommands:
        return AdminCommands(self._client.admin)

    async def close(self) -> None:
        await self._client.close()
