"""Base model for structured log lines; each package declares its own entries."""
from collections.abc import Set
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

EntryTypeT = TypeVar("EntryTypeT", bound=str)


class LogEntryType(str, Enum):
    lifecycle = "lifecycle"
    election = "election"
    process = "process"


class LogEntry(BaseModel, Generic[EntryTypeT]):
    model_config = ConfigDict(frozen=True)

    entry_destination: Set[LogEntryType]
    entry_type: EntryTypeT
