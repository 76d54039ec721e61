"""
Ephemeral MongoDB replica sets for tests.

    from replset import MemoryReplSet

    async with MemoryReplSet({"replSet": {"count": 3}}) as replset:
        uri = await replset.get_uri()
"""

from replset.replica_set import MemoryReplSet
from shared.types.errors import (
    DependencyMissingError,
    ElectionTimeoutError,
    InstanceError,
    InvalidStateError,
    NotRunningError,
    ReplSetError,
)
from shared.types.replset import (
    ConfigSettings,
    InstanceOverrides,
    MemoryReplSetOpts,
    ReplSetOpts,
    ReplSetState,
)

__all__ = [
    "ConfigSettings",
    "DependencyMissingError",
    "ElectionTimeoutError",
    "InstanceError",
    "InstanceOverrides",
    "InvalidStateError",
    "MemoryReplSet",
    "MemoryReplSetOpts",
    "NotRunningError",
    "ReplSetError",
    "ReplSetOpts",
    "ReplSetState",
]
