"""
Best-effort cleanup of mongod processes when the interpreter exits while a
replica set is still up. This is a safety net for forgotten or crashed test
runs; callers are still expected to `await replset.stop()`.
"""
import atexit
import contextlib
import weakref
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from replset.replica_set import MemoryReplSet

_live_replsets: "weakref.WeakSet[MemoryReplSet]" = weakref.WeakSet()
_installed = False


def register(replset: "MemoryReplSet") -> None:
    global _installed
    _live_replsets.add(replset)
    if not _installed:
        atexit.register(kill_all)
        _installed = True


def unregister(replset: "MemoryReplSet") -> None:
    _live_replsets.discard(replset)


def kill_all() -> None:
    for replset in list(_live_replsets):
        for server in replset.servers:
            # each node independently, one failure must not skip the rest
            with contextlib.suppress(Exception):
                server.kill_sync()
