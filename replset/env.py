from shared.env import BaseEnv


class ReplSetEnvironmentSchema(BaseEnv):
    # Turns on diagnostic log entries when the debug option is not given
    MONGOMS_DEBUG: bool = False
