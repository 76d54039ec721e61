from typing import Any, Self
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler
from pydantic.alias_generators import to_camel
from pydantic_core import core_schema


class InstanceId(str):
    """Short opaque handle for one mongod process, shared by all its log entries."""

    def __new__(cls, value: str | None = None) -> Self:
        return super().__new__(cls, value or uuid4().hex[:12])

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source: type[Any], handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(cls, handler.generate_schema(str))


class CamelCaseModel(BaseModel):
    """
    Options model accepting both the camelCase names callers know from the
    server's own settings and the snake_case field names.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
        extra="forbid",
    )


class Host(BaseModel):
    """One `host:port` entry of a connection string or member list."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = Field(ge=0, le=65535)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"
