from collections.abc import Set
from typing import Any, Literal

from shared.logging.common import LogEntry, LogEntryType
from shared.types.replset import InstanceProps, ReplSetState


class ReplSetStateChangedLogEntry(LogEntry[Literal["replset_state_changed"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.lifecycle}
    entry_type: Literal["replset_state_changed"] = "replset_state_changed"
    state: ReplSetState
    error: str | None = None


class ReplSetAutoStartLogEntry(LogEntry[Literal["replset_auto_start"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.lifecycle}
    entry_type: Literal["replset_auto_start"] = "replset_auto_start"
    message: str


class ReplSetAutoStartFailedLogEntry(LogEntry[Literal["replset_auto_start_failed"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.lifecycle}
    entry_type: Literal["replset_auto_start_failed"] = "replset_auto_start_failed"
    error: str


class InstanceOptsLogEntry(LogEntry[Literal["instance_opts"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.lifecycle}
    entry_type: Literal["instance_opts"] = "instance_opts"
    instance_opts: InstanceProps


class InstanceStopFailedLogEntry(LogEntry[Literal["instance_stop_failed"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.lifecycle}
    entry_type: Literal["instance_stop_failed"] = "instance_stop_failed"
    error: str


class ReplSetInitiateLogEntry(LogEntry[Literal["replset_initiate"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.election}
    entry_type: Literal["replset_initiate"] = "replset_initiate"
    config: dict[str, Any]


class PrimaryPollLogEntry(LogEntry[Literal["primary_poll"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.election}
    entry_type: Literal["primary_poll"] = "primary_poll"
    has_primary: bool
    remaining_ms: int


class StateCallbackErrorLogEntry(LogEntry[Literal["state_callback_error"]]):
    entry_destination: Set[LogEntryType] = {LogEntryType.lifecycle}
    entry_type: Literal["state_callback_error"] = "state_callback_error"
    state: ReplSetState
    error: str


ReplSetLogEntries = (
    ReplSetStateChangedLogEntry
    | ReplSetAutoStartLogEntry
    | ReplSetAutoStartFailedLogEntry
    | InstanceOptsLogEntry
    | InstanceStopFailedLogEntry
    | ReplSetInitiateLogEntry
    | PrimaryPollLogEntry
    | StateCallbackErrorLogEntry
)
