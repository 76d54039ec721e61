class ReplSetError(Exception):
    """Base class for every error raised by the replica set controller and its nodes."""


class InvalidStateError(ReplSetError):
    """An operation was attempted in a lifecycle state that forbids it."""

    def __init__(self, operation: str, state: str, expected: str):
        self.operation = operation
        self.state = state
        self.expected = expected
        super().__init__(
            f"Cannot {operation} while in '{state}' state (expected '{expected}'). "
            "Use debug=True for more info."
        )


class NotRunningError(ReplSetError):
    pass


class ElectionTimeoutError(ReplSetError):
    """No member reported a PRIMARY before the poll budget was used up."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"No PRIMARY elected yet. Timeout of {timeout_ms}ms expired.")


class DependencyMissingError(ReplSetError):
    def __init__(self, package: str, purpose: str):
        self.package = package
        super().__init__(f'You need to install the "{package}" package. It is required for {purpose}.')


class InstanceError(ReplSetError):
    """Raised when a single mongod process cannot be started or queried."""

    def __init__(self, message: str, output: str = ""):
        self.output = output
        super().__init__(f"{message}\n{output}" if output else message)
