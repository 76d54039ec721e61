import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable
from logging import Logger

from replset.logging import StateCallbackErrorLogEntry
from shared.logger import log
from shared.types.replset import ReplSetState

StateCallback = Callable[[BaseException | None], None]


class StateEmitter:
    """
    Publish/subscribe channel for lifecycle transitions, keyed by state.

    Callbacks run synchronously, in registration order, on every emission of
    their state. `once` hands back a future that resolves on the next emission
    only, which is how callers wait for a transition without polling.
    """

    def __init__(self, logger: Logger):
        self._logger = logger
        self._callbacks: defaultdict[ReplSetState, list[StateCallback]] = defaultdict(list)
        self._waiters: defaultdict[ReplSetState, list[asyncio.Future[BaseException | None]]] = (
            defaultdict(list)
        )

    def on(self, state: ReplSetState, callback: StateCallback) -> None:
        self._callbacks[state].append(callback)

    def off(self, state: ReplSetState, callback: StateCallback) -> None:
        if callback in self._callbacks[state]:
            self._callbacks[state].remove(callback)

    def once(self, state: ReplSetState) -> asyncio.Future[BaseException | None]:
        future: asyncio.Future[BaseException | None] = asyncio.get_running_loop().create_future()
        self._waiters[state].append(future)
        return future

    def emit(self, state: ReplSetState, error: BaseException | None = None) -> None:
        waiters = self._waiters.pop(state, [])
        for future in waiters:
            if not future.done():
                future.set_result(error)

        for callback in list(self._callbacks[state]):
            try:
                callback(error)
            except Exception as e:
                log(
                    self._logger,
                    StateCallbackErrorLogEntry(state=state, error=repr(e)),
                    logging.ERROR,
                )

    def listener_count(self, state: ReplSetState) -> int:
        return len(self._callbacks[state]) + len(self._waiters[state])
