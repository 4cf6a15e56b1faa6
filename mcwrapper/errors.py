"""
Errors raised by the process bridge and the control surface around it.

Every bridge operation reports failure by raising one of these; nothing is
retried internally. The HTTP layer turns them into error responses.
"""


class BridgeError(Exception):
    """Base class for failures talking to the supervised server."""


class SpawnFailed(BridgeError):
    """The server process could not be launched or its pipes captured."""


class BrokenPipe(BridgeError):
    """The output stream closed while a response was expected.

    This means the server process went away. It is never raised for a
    channel that is merely empty.
    """


class ProtocolViolation(BridgeError):
    """A response line did not have the expected shape."""

    def __init__(self, message: str, line: str = None):
        super().__init__(message)
        self.line = line


class CommandFailed(BridgeError):
    """Writing a command to the server's stdin failed."""


class StopFailed(BridgeError):
    """The server could not be stopped cleanly."""


class ExitFailure(StopFailed):
    """The server exited with a non-zero status or was killed by a signal."""

    def __init__(self, code: int = None, signal: int = None):
        self.code = code
        self.signal = signal
        if code is not None:
            message = f"server exited with code {code}"
        elif signal is not None:
            message = f"server was terminated by signal {signal}"
        else:
            message = "server was terminated forcibly"
        super().__init__(message)


class RestartFailed(BridgeError):
    """The recovery path could not bring the server back up."""


class BackupFailed(BridgeError):
    """A world backup could not be created."""


class ServerNotRunning(BridgeError):
    """An operation needs a launched server but there is none."""


class ShutdownAlreadyRequested(Exception):
    """The one-shot shutdown signal was already sent."""
