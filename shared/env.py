import logging
import os
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError


class BaseEnv(BaseModel):
    """Environment schema; variables it does not name are ignored."""

    model_config = ConfigDict(extra="ignore", frozen=True)


EnvSchema = TypeVar("EnvSchema", bound=BaseEnv)


def get_validated_env(environment_schema: type[EnvSchema], logger: logging.Logger) -> EnvSchema:
    try:
        return environment_schema.model_validate(dict(os.environ))
    except ValidationError as e:
        logger.error("Invalid %s environment: %s", environment_schema.__name__, e)
        raise
