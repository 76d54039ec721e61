import asyncio
import logging
from collections.abc import Mapping
from logging import Logger
from types import TracebackType
from typing import Any, Self

from instance.mongod import MongodInstance
from instance.transport import AdminTransport
from replset import exit_hook
from replset.connection_string import build_uri, resolve_db_name
from replset.env import ReplSetEnvironmentSchema
from replset.events import StateCallback, StateEmitter
from replset.logging import (
    InstanceOptsLogEntry,
    InstanceStopFailedLogEntry,
    PrimaryPollLogEntry,
    ReplSetAutoStartFailedLogEntry,
    ReplSetAutoStartLogEntry,
    ReplSetInitiateLogEntry,
    ReplSetLogEntries,
    ReplSetStateChangedLogEntry,
)
from shared.env import get_validated_env
from shared.logger import configure_logger, log
from shared.types.errors import (
    ElectionTimeoutError,
    InvalidStateError,
    NotRunningError,
    ReplSetError,
)
from shared.types.instance import (
    AdminCommands,
    InstanceFactory,
    InstanceHandle,
    TransportFactory,
)
from shared.types.replset import (
    ConfigSettings,
    InstanceOverrides,
    InstanceProps,
    MemoryReplSetOpts,
    ReplSetState,
)
from shared.utils import get_host

LOGGER_NAME = "replset"
POLL_INTERVAL_MS = 500
DEFAULT_PRIMARY_TIMEOUT_MS = 30000


def has_primary(status: Mapping[str, Any]) -> bool:
    """
    Read a `hello` response: the node is the primary itself, or it knows
    which member of the set currently is.
    """
    return bool(
        status.get("isWritablePrimary")
        or status.get("ismaster")
        or status.get("primary")
    )


class MemoryReplSet:
    """
    Ephemeral replica set for tests.

    Starts `count` mongod processes concurrently, initiates them as one
    replica set through the first member, waits for a PRIMARY and then hands
    out a multi-host connection string.

    Lifecycle: stopped -> initializing -> running, and back to stopped from
    any state on `stop()`. Every transition is emitted with the new state;
    use `on`/`once`/`wait_until_running` to observe them.

    Use the class method `create` (or `async with`) to get a running set in
    one step.
    """

    def __init__(
        self,
        opts: MemoryReplSetOpts | Mapping[str, Any] | None = None,
        logger: Logger | None = None,
        instance_factory: InstanceFactory | None = None,
        transport_factory: TransportFactory | None = None,
    ):
        if opts is None:
            opts = MemoryReplSetOpts()
        elif not isinstance(opts, MemoryReplSetOpts):
            opts = MemoryReplSetOpts.model_validate(opts)

        if not opts.debug:
            env = get_validated_env(ReplSetEnvironmentSchema, logging.getLogger(LOGGER_NAME))
            if env.MONGOMS_DEBUG:
                opts = opts.model_copy(update={"debug": True})

        self.opts: MemoryReplSetOpts = opts
        self.logger: Logger = logger or configure_logger(
            LOGGER_NAME, logging.DEBUG if opts.debug else logging.INFO
        )
        self._state = ReplSetState.stopped
        self._servers: list[InstanceHandle] = []
        self._admin: AdminCommands | None = None
        self._events = StateEmitter(self.logger)
        self._instance_factory: InstanceFactory = instance_factory or self._create_instance
        self._transport_factory: TransportFactory = transport_factory or AdminTransport.connect
        self._auto_start_task: asyncio.Task[None] | None = None
        self._initiation: asyncio.Task[None] | None = None
        # bumped by every stop(); work started under an older value is stale
        self._generation = 0

        if opts.auto_start is not False:
            self._schedule_auto_start()

    @classmethod
    async def create(
        cls,
        opts: MemoryReplSetOpts | Mapping[str, Any] | None = None,
        logger: Logger | None = None,
        instance_factory: InstanceFactory | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> "MemoryReplSet":
        """Construct, start and return a replica set that already has a PRIMARY."""
        if opts is None:
            opts = MemoryReplSetOpts()
        elif not isinstance(opts, MemoryReplSetOpts):
            opts = MemoryReplSetOpts.model_validate(opts)

        self = cls(
            opts.model_copy(update={"auto_start": False}),
            logger=logger,
            instance_factory=instance_factory,
            transport_factory=transport_factory,
        )
        await self.start()
        return self

    async def __aenter__(self) -> Self:
        if self._auto_start_task is not None and not self._auto_start_task.done():
            await self._auto_start_task
        elif self._state == ReplSetState.stopped:
            await self.start()
        await self.wait_until_running()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    @property
    def state(self) -> ReplSetState:
        return self._state

    @property
    def servers(self) -> tuple[InstanceHandle, ...]:
        return tuple(self._servers)

    def on(self, state: ReplSetState, callback: StateCallback) -> None:
        self._events.on(state, callback)

    def off(self, state: ReplSetState, callback: StateCallback) -> None:
        self._events.off(state, callback)

    def once(self, state: ReplSetState) -> asyncio.Future[BaseException | None]:
        return self._events.once(state)

    async def get_connection_string(self, other_db: str | bool | None = None) -> str:
        return await self.get_uri(other_db)

    async def get_db_name(self) -> str:
        return self.opts.repl_set.db_name

    def get_instance_opts(
        self, overrides: InstanceOverrides | Mapping[str, Any] | None = None
    ) -> InstanceProps:
        """Options for one member: the set-wide defaults with `overrides` applied on top."""
        if overrides is None:
            overrides = InstanceOverrides()
        elif not isinstance(overrides, InstanceOverrides):
            overrides = InstanceOverrides.model_validate(overrides)

        rs_opts = self.opts.repl_set
        props = InstanceProps(
            auth=rs_opts.auth,
            args=[*rs_opts.args, *(overrides.args or [])],
            db_name=rs_opts.db_name,
            ip=rs_opts.ip,
            repl_set=rs_opts.name,
            storage_engine=overrides.storage_engine or rs_opts.storage_engine,
            port=overrides.port or None,
            db_path=overrides.db_path,
        )
        self._debug(InstanceOptsLogEntry(instance_opts=props))
        return props

    async def get_uri(self, other_db: str | bool | None = None) -> str:
        """
        Connection string naming every member. While the set is still
        initializing this waits for the PRIMARY and then for the initiation
        to finish, re-raising its error if it failed.
        """
        if self._state == ReplSetState.initializing:
            if await self.wait_for_primary() and self._initiation is not None:
                await asyncio.shield(self._initiation)
        if self._state != ReplSetState.running:
            raise NotRunningError("Replica Set is not running. Use debug=True for more info.")

        db_name = resolve_db_name(self.opts.repl_set.db_name, other_db)
        ports = await asyncio.gather(*(server.get_port() for server in self._servers))
        return build_uri(self.opts.repl_set.ip, ports, db_name)

    async def start(self) -> None:
        if self._state != ReplSetState.stopped:
            raise InvalidStateError("start", self._state.value, ReplSetState.stopped.value)
        self._set_state(ReplSetState.initializing)
        generation = self._generation
        exit_hook.register(self)

        # Members from instance_opts go first: a caller may have pointed one at
        # an existing db_path, and replSetInitiate has to run against that one.
        servers = [
            self._instance_factory(self.get_instance_opts(overrides))
            for overrides in self.opts.instance_opts
        ]
        while len(servers) < self.opts.repl_set.count:
            servers.append(self._instance_factory(self.get_instance_opts()))

        results = await asyncio.gather(
            *(server.start() for server in servers), return_exceptions=True
        )
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            await self._stop_servers(servers)
            if generation == self._generation:
                exit_hook.unregister(self)
                self._set_state(ReplSetState.stopped, errors[0])
            raise errors[0]

        if generation != self._generation:
            # stop() ran while the nodes were starting; they were never adopted
            await self._stop_servers(servers)
            raise InvalidStateError(
                "adopt started servers", self._state.value, ReplSetState.initializing.value
            )

        self._servers = servers
        self._initiation = asyncio.create_task(self._init_repl_set())
        await self._initiation

    async def stop(self) -> bool:
        if self._state == ReplSetState.stopped:
            return False

        self._generation += 1
        servers = self._servers
        self._servers = []
        exit_hook.unregister(self)
        errors = await self._stop_servers(servers)
        self._set_state(ReplSetState.stopped, errors[0] if errors else None)
        return True

    async def wait_until_running(self) -> None:
        if self._state == ReplSetState.running:
            return
        await self._events.once(ReplSetState.running)

    async def wait_for_primary(self, timeout_ms: int = DEFAULT_PRIMARY_TIMEOUT_MS) -> bool:
        """
        Poll the initiation target every POLL_INTERVAL_MS until it reports a
        PRIMARY. Returns False when no admin connection is open.
        """
        admin = self._admin
        if admin is None:
            return False

        remaining_ms = timeout_ms
        while True:
            status = await admin.command({"hello": 1})
            if has_primary(status):
                self._debug(PrimaryPollLogEntry(has_primary=True, remaining_ms=remaining_ms))
                return True

            remaining_ms -= POLL_INTERVAL_MS
            self._debug(PrimaryPollLogEntry(has_primary=False, remaining_ms=remaining_ms))
            if remaining_ms <= 0:
                raise ElectionTimeoutError(timeout_ms)
            await asyncio.sleep(POLL_INTERVAL_MS / 1000)

    async def _init_repl_set(self) -> None:
        """
        Connect to the first member and issue replSetInitiate with every
        member in it, then wait for the election to finish.
        """
        if self._state != ReplSetState.initializing:
            raise InvalidStateError(
                "initiate the replica set", self._state.value, ReplSetState.initializing.value
            )
        if not self._servers:
            raise ReplSetError("One or more servers are required.")

        generation = self._generation
        uris = await asyncio.gather(*(server.get_uri() for server in self._servers))
        connection = await self._transport_factory(uris[0])
        try:
            self._admin = connection.get_admin()
            rs_opts = self.opts.repl_set
            members = [{"_id": idx, "host": get_host(uri)} for idx, uri in enumerate(uris)]
            rs_config: dict[str, Any] = {
                "_id": rs_opts.name,
                "members": members,
                "settings": (rs_opts.config_settings or ConfigSettings()).to_settings(),
            }
            self._debug(ReplSetInitiateLogEntry(config=rs_config))
            await self._admin.command({"replSetInitiate": rs_config})
            await self.wait_for_primary()
            if generation != self._generation or self._state != ReplSetState.initializing:
                raise InvalidStateError(
                    "mark the replica set running", self._state.value, ReplSetState.initializing.value
                )
            self._set_state(ReplSetState.running)
        finally:
            self._admin = None
            await connection.close()

    async def _stop_servers(self, servers: list[InstanceHandle]) -> list[BaseException]:
        results = await asyncio.gather(
            *(server.stop() for server in servers), return_exceptions=True
        )
        errors = [result for result in results if isinstance(result, BaseException)]
        for error in errors:
            log(self.logger, InstanceStopFailedLogEntry(error=repr(error)), logging.WARNING)
        return errors

    def _create_instance(self, props: InstanceProps) -> InstanceHandle:
        return MongodInstance(
            props,
            logger=self.logger,
            binary=self.opts.binary,
            spawn=self.opts.repl_set.spawn,
            debug=self.opts.debug,
        )

    def _set_state(self, state: ReplSetState, error: BaseException | None = None) -> None:
        self._state = state
        self._debug(
            ReplSetStateChangedLogEntry(state=state, error=repr(error) if error else None)
        )
        self._events.emit(state, error)

    def _schedule_auto_start(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log(
                self.logger,
                ReplSetAutoStartLogEntry(
                    message="No running event loop to autostart on, call start() explicitly."
                ),
                logging.WARNING,
            )
            return

        self._debug(ReplSetAutoStartLogEntry(message="Autostarting replica set."))
        self._auto_start_task = loop.create_task(self.start())
        self._auto_start_task.add_done_callback(self._on_auto_start_done)

    def _on_auto_start_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log(self.logger, ReplSetAutoStartFailedLogEntry(error=repr(error)), logging.ERROR)

    def _debug(self, entry: ReplSetLogEntries) -> None:
        if self.opts.debug:
            log(self.logger, entry, logging.DEBUG)
