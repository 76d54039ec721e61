import asyncio
import contextlib
import logging
import shutil
import tempfile
from logging import Logger
from pathlib import Path

import psutil

from instance.env import InstanceEnvironmentSchema
from instance.logging import (
    InstanceExitedLogEntry,
    InstanceKilledLogEntry,
    InstanceOutputLogEntry,
    InstanceReadyLogEntry,
    InstanceSpawnedLogEntry,
)
from shared.env import get_validated_env
from shared.logger import log
from shared.types.common import InstanceId
from shared.types.errors import InstanceError
from shared.types.replset import InstanceProps, MongoBinaryOpts, SpawnOptions
from shared.utils import connect_host, get_free_port

READY_MARKER = "waiting for connections"
FAILURE_MARKERS = (
    "addr already in use",
    "exception in initandlisten",
    "dbexception",
    "fatal assertion",
)
TERMINATE_TIMEOUT = 5.0
# the controller owns stdio, callers may only pass e.g. env or cwd
RESERVED_SPAWN_KEYS = frozenset({"stdin", "stdout", "stderr"})


class MongodInstance:
    """
    Manages a single mongod subprocess: port and dbpath allocation, readiness
    detection from the server log, and shutdown.

    One instance is good for one start/stop cycle at a time; the replica set
    controller creates a fresh one per member on every start.
    """

    def __init__(
        self,
        props: InstanceProps,
        logger: Logger,
        binary: MongoBinaryOpts | None = None,
        spawn: SpawnOptions | None = None,
        debug: bool = False,
    ):
        self.props = props
        self.instance_id = InstanceId()
        self._logger = logger
        self._binary_opts = binary or MongoBinaryOpts()
        self._spawn: SpawnOptions = {
            key: value for key, value in (spawn or {}).items() if key not in RESERVED_SPAWN_KEYS
        }
        self._debug = debug
        self._process: asyncio.subprocess.Process | None = None
        self._output_task: asyncio.Task[None] | None = None
        self._port: int | None = None
        self._db_path: Path | None = None
        self._tmp_dir: Path | None = None
        self._stopping = False

    def resolve_binary(self) -> Path:
        if self._binary_opts.system_binary is not None:
            return self._binary_opts.system_binary

        env = get_validated_env(InstanceEnvironmentSchema, self._logger)
        if env.MONGOMS_SYSTEM_BINARY is not None:
            return env.MONGOMS_SYSTEM_BINARY

        found = shutil.which("mongod")
        if found is None:
            raise InstanceError(
                "Could not find a mongod binary. Set binary.system_binary or MONGOMS_SYSTEM_BINARY."
            )
        return Path(found)

    def build_command(self, binary: Path, port: int, db_path: Path) -> list[str]:
        return [
            str(binary),
            "--bind_ip", self.props.ip,
            "--port", str(port),
            "--dbpath", str(db_path),
            "--storageEngine", self.props.storage_engine,
            "--replSet", self.props.repl_set,
            "--auth" if self.props.auth else "--noauth",
            *self.props.args,
        ]

    async def start(self) -> None:
        if self.is_running:
            raise InstanceError(f"mongod on port {self._port} is already running")

        binary = self.resolve_binary()
        port = self.props.port or get_free_port(connect_host(self.props.ip))
        if self.props.db_path is not None:
            db_path = self.props.db_path
            db_path.mkdir(parents=True, exist_ok=True)
        else:
            self._tmp_dir = Path(tempfile.mkdtemp(prefix="mongo-mem-"))
            db_path = self._tmp_dir

        command = self.build_command(binary, port, db_path)
        self._port = port
        self._db_path = db_path
        self._process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            **self._spawn,
        )
        if self._debug:
            log(
                self._logger,
                InstanceSpawnedLogEntry(
                    instance_id=self.instance_id,
                    pid=self._process.pid, port=port, db_path=db_path, command=command
                ),
                logging.DEBUG,
            )

        try:
            await asyncio.wait_for(self._wait_for_ready(), timeout=self.props.launch_timeout)
        except asyncio.TimeoutError:
            await self._abort_start()
            raise InstanceError(
                f"mongod on port {port} did not accept connections within {self.props.launch_timeout}s"
            )
        except InstanceError:
            await self._abort_start()
            raise

        if self._debug:
            log(
                self._logger,
                InstanceReadyLogEntry(instance_id=self.instance_id, pid=self._process.pid, port=port),
                logging.DEBUG,
            )
        self._output_task = asyncio.create_task(self._drain_output())

    async def stop(self) -> bool:
        if self._process is None:
            return False

        self._stopping = True
        try:
            await self._stop_process()
        finally:
            self._stopping = False
            self._remove_tmp_dir()
            self._port = None
        return True

    def kill_sync(self) -> None:
        """Kill the process tree without an event loop; used from the interpreter exit hook."""
        if self._process is None or self._process.returncode is not None:
            return

        with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
            parent = psutil.Process(self._process.pid)
            for child in reversed(parent.children(recursive=True)):
                with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
                    child.kill()
            parent.kill()
        self._remove_tmp_dir()

    async def get_port(self) -> int:
        if self._port is None or not self.is_running:
            raise InstanceError("mongod is not running; call start() first")
        return self._port

    async def get_uri(self, other_db: str | None = None) -> str:
        port = await self.get_port()
        return f"mongodb://{connect_host(self.props.ip)}:{port}/{other_db or self.props.db_name}"

    async def _wait_for_ready(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        output: list[str] = []
        while True:
            line_bytes = await self._process.stdout.readline()
            if not line_bytes:
                returncode = await self._process.wait()
                raise InstanceError(
                    f"mongod exited with code {returncode} before accepting connections",
                    "\n".join(output),
                )

            line = line_bytes.decode("utf-8", errors="replace").strip()
            output.append(line)
            lowered = line.lower()
            if READY_MARKER in lowered:
                return
            if any(marker in lowered for marker in FAILURE_MARKERS):
                raise InstanceError(f"mongod on port {self._port} failed to start", "\n".join(output))

    async def _drain_output(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        port = self._port or 0
        while True:
            line_bytes = await self._process.stdout.readline()
            if not line_bytes:
                break
            if self._debug:
                line = line_bytes.decode("utf-8", errors="replace").strip()
                log(
                    self._logger,
                    InstanceOutputLogEntry(instance_id=self.instance_id, port=port, line=line),
                    logging.DEBUG,
                )

        returncode = await self._process.wait()
        if not self._stopping:
            log(
                self._logger,
                InstanceExitedLogEntry(instance_id=self.instance_id, port=port, returncode=returncode),
                logging.WARNING,
            )

    async def _abort_start(self) -> None:
        await self._stop_process()
        self._remove_tmp_dir()
        self._port = None

    async def _stop_process(self) -> None:
        if self._process is None:
            return

        if self._process.returncode is None:
            try:
                self._process.terminate()
                await asyncio.wait_for(self._process.wait(), timeout=TERMINATE_TIMEOUT)
            except asyncio.TimeoutError:
                log(
                    self._logger,
                    InstanceKilledLogEntry(instance_id=self.instance_id, pid=self._process.pid),
                    logging.WARNING,
                )
                self._process.kill()
                await self._process.wait()
            except ProcessLookupError:
                pass

        if self._output_task is not None:
            self._output_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._output_task
            self._output_task = None
        self._process = None

    def _remove_tmp_dir(self) -> None:
        if self._tmp_dir is not None:
            shutil.rmtree(self._tmp_dir, ignore_errors=True)
            self._tmp_dir = None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def db_path(self) -> Path | None:
        return self._db_path
