from collections.abc import Set
from pathlib import Path
from typing import Literal

from shared.logging.common import LogEntry, LogEntryType
from shared.types.common import InstanceId


class InstanceSpawnedLogEntry(LogEntry[Literal["instance_spawned"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.process}
    entry_type: Literal["instance_spawned"] = "instance_spawned"
    instance_id: InstanceId
    pid: int
    port: int
    db_path: Path
    command: list[str]


class InstanceReadyLogEntry(LogEntry[Literal["instance_ready"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.process}
    entry_type: Literal["instance_ready"] = "instance_ready"
    instance_id: InstanceId
    pid: int
    port: int
    message: str = "mongod is waiting for connections"


class InstanceOutputLogEntry(LogEntry[Literal["instance_output"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.process}
    entry_type: Literal["instance_output"] = "instance_output"
    instance_id: InstanceId
    port: int
    line: str


class InstanceExitedLogEntry(LogEntry[Literal["instance_exited"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.process}
    entry_type: Literal["instance_exited"] = "instance_exited"
    instance_id: InstanceId
    port: int
    returncode: int | None


class InstanceKilledLogEntry(LogEntry[Literal["instance_killed"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.process}
    entry_type: Literal["instance_killed"] = "instance_killed"
    instance_id: InstanceId
    pid: int
    message: str = "mongod did not terminate, killing"


InstanceLogEntries = (
    InstanceSpawnedLogEntry
    | InstanceReadyLogEntry
    | InstanceOutputLogEntry
    | InstanceExitedLogEntry
    | InstanceKilledLogEntry
)
