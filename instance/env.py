from pathlib import Path

from shared.env import BaseEnv


class InstanceEnvironmentSchema(BaseEnv):
    # Path of an already installed mongod, used when no binary is configured
    MONGOMS_SYSTEM_BINARY: Path | None = None
