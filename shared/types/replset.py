from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import ConfigDict, Field, model_validator

from shared.types.common import CamelCaseModel
from shared.utils import generate_db_name

OPLOG_SIZE_FLAG = "--oplogSize"

DEFAULT_ELECTION_TIMEOUT_MILLIS = 500

SpawnOptions = dict[str, Any]


class ReplSetState(str, Enum):
    stopped = "stopped"
    initializing = "initializing"
    running = "running"


class ConfigSettings(CamelCaseModel):
    """Consensus tuning forwarded into the `settings` block of replSetInitiate."""

    model_config = ConfigDict(frozen=True)

    chaining_allowed: bool | None = None
    heartbeat_timeout_secs: int | None = None
    heartbeat_interval_millis: int | None = None
    election_timeout_millis: int | None = None
    catch_up_timeout_millis: int | None = None

    def to_settings(self) -> dict[str, Any]:
        settings: dict[str, Any] = {"electionTimeoutMillis": DEFAULT_ELECTION_TIMEOUT_MILLIS}
        settings.update(self.model_dump(by_alias=True, exclude_none=True))
        return settings


class InstanceOverrides(CamelCaseModel):
    """Per-member values a caller may pin; anything unset falls back to the set-wide defaults."""

    model_config = ConfigDict(frozen=True)

    args: list[str] | None = None
    port: int | None = Field(default=None, ge=0, le=65535)
    db_path: Path | None = None
    storage_engine: str | None = None


class InstanceProps(CamelCaseModel):
    model_config = ConfigDict(frozen=True)

    auth: bool = False
    args: list[str] = Field(default_factory=list)
    db_name: str
    ip: str = "127.0.0.1"
    repl_set: str
    storage_engine: str = "ephemeralForTest"
    port: int | None = Field(default=None, ge=0, le=65535)
    db_path: Path | None = None
    launch_timeout: float = 10.0


class MongoBinaryOpts(CamelCaseModel):
    model_config = ConfigDict(frozen=True)

    system_binary: Path | None = None


class ReplSetOpts(CamelCaseModel):
    model_config = ConfigDict(frozen=True)

    auth: bool = False
    args: list[str] = Field(default_factory=list)
    count: int = Field(default=1, ge=1)
    db_name: str = Field(default_factory=generate_db_name)
    ip: str = "127.0.0.1"
    name: str = "testset"
    oplog_size: int = Field(default=1, ge=1)
    spawn: SpawnOptions = Field(default_factory=dict)
    storage_engine: str = "ephemeralForTest"
    config_settings: ConfigSettings | None = None

    @model_validator(mode="before")
    @classmethod
    def _materialize_oplog_size(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        args, flag_value = _split_oplog_flag(data.get("args") or [])
        if "oplog_size" in data:
            oplog_size = data["oplog_size"]
        elif "oplogSize" in data:
            oplog_size = data["oplogSize"]
        elif flag_value is not None:
            # only the flag was given; the field follows it
            oplog_size = data["oplog_size"] = flag_value
        else:
            oplog_size = 1
        data["args"] = [*args, OPLOG_SIZE_FLAG, str(oplog_size)]
        return data


def _split_oplog_flag(args: list[str]) -> tuple[list[str], str | None]:
    """Remove every `--oplogSize N` / `--oplogSize=N` from args, returning the last value seen."""
    kept: list[str] = []
    value: str | None = None
    remaining = iter(args)
    for arg in remaining:
        if arg == OPLOG_SIZE_FLAG:
            value = next(remaining, value)
        elif arg.startswith(f"{OPLOG_SIZE_FLAG}="):
            value = arg.split("=", 1)[1]
        else:
            kept.append(arg)
    return kept, value


class MemoryReplSetOpts(CamelCaseModel):
    model_config = ConfigDict(frozen=True)

    instance_opts: list[InstanceOverrides] = Field(default_factory=list)
    binary: MongoBinaryOpts = Field(default_factory=MongoBinaryOpts)
    repl_set: ReplSetOpts = Field(default_factory=ReplSetOpts)
    auto_start: bool | None = None
    debug: bool = False
