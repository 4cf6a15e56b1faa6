"""
Process bridge for a Minecraft server.

Owns the server process, its stdin, and the consumer end of the channel its
stdout is drained into. Every operation blocks the caller. None of them is
safe to call concurrently; callers hold a single lock around each call (see
ServerManager), so a command and the response line it waits for are never
interleaved with another caller's.

No operation has a timeout. A server that never prints the line an operation
waits for blocks that operation until the server dies.
"""

import logging
import shlex
import subprocess
import tarfile
import threading
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .backup import create_world_archive
from .config import DEFAULT_MAX_MEMORY_MB
from .errors import (
    BackupFailed,
    BridgeError,
    BrokenPipe,
    CommandFailed,
    ExitFailure,
    ProtocolViolation,
    RestartFailed,
    ServerNotRunning,
    SpawnFailed,
    StopFailed,
)
from .reader import LineChannel, LineReader, echo_to_console

logger = logging.getLogger(__name__)
stderr_logger = logging.getLogger("mcwrapper.child.stderr")

READY_MARKER = "Done"
LIST_COMMAND = "/list"
STOP_COMMAND = "/stop"

# Disables log4j message lookups (CVE-2021-44228)
SAFETY_FLAG = "-Dlog4j2.formatMsgNoLookups=true"
HEADLESS_FLAG = "nogui"


class BridgeState(Enum):
    STARTING = "starting"
    READY = "ready"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DEAD = "dead"


def build_command(runtime: str, max_memory_mb: int, jar_path) -> list[str]:
    """Build the argv used to launch the server."""
    return [
        runtime,
        SAFETY_FLAG,
        f"-Xmx{max_memory_mb}m",
        "-jar",
        str(jar_path),
        HEADLESS_FLAG,
    ]


def parse_player_list(line: str) -> list[str]:
    """Parse the reply to /list.

    The reply looks like ``... 2 of a max of 20 players online: alice, bob``.
    Everything after the last colon is a comma separated list of names.
    """
    _, sep, names = line.rpartition(":")
    if not sep:
        raise ProtocolViolation(f"unexpected reply to {LIST_COMMAND}: {line!r}", line)

    names = names.strip()
    if not names:
        return []
    return [name.strip() for name in names.split(",")]


def _drain_stderr(stream):
    """Log the server's stderr so the pipe never fills up."""
    try:
        for raw in iter(stream.readline, b""):
            line = raw.decode("utf-8", errors="replace").rstrip()
            if line:
                stderr_logger.warning(line)
    except (OSError, ValueError) as e:
        logger.debug(f"Server stderr stream closed: {e}")


class ProcessBridge:
    """Synchronous request/response access to a line-oriented server process."""

    def __init__(
        self,
        jar_path,
        max_memory_mb: int = DEFAULT_MAX_MEMORY_MB,
        *,
        runtime: str = "java",
        cwd=None,
        world_dir=None,
        echo: Optional[Callable[[str], None]] = echo_to_console,
        recovery_memory_mb: int = DEFAULT_MAX_MEMORY_MB,
    ):
        # Absolute, since the server runs with its own directory as cwd
        self.jar_path = Path(jar_path).expanduser().resolve()
        self.max_memory_mb = max_memory_mb
        self.runtime = runtime
        self.cwd = Path(cwd).expanduser().resolve() if cwd else self.jar_path.parent
        self.world_dir = Path(world_dir).expanduser().resolve() if world_dir else self.cwd / "world"
        self.recovery_memory_mb = recovery_memory_mb
        self._echo = echo

        self._process: Optional[subprocess.Popen] = None
        self._channel: Optional[LineChannel] = None
        self._reader: Optional[LineReader] = None
        self._state = BridgeState.STOPPED
        self.memory_mb: Optional[int] = None
        self.started_at: Optional[datetime] = None

    @classmethod
    def start(cls, max_memory_mb: int, jar_path, **kwargs) -> "ProcessBridge":
        """Launch the server and return a bridge in the STARTING state."""
        bridge = cls(jar_path, max_memory_mb, **kwargs)
        bridge._spawn(max_memory_mb)
        return bridge

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def is_alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def _spawn(self, memory_mb: int):
        """Launch a fresh process and swap it in along with its pipes."""
        cmd = build_command(self.runtime, memory_mb, self.jar_path)
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
            )
        except (OSError, ValueError) as e:
            raise SpawnFailed(f"failed to launch {shlex.join(cmd)}: {e}") from e

        if process.stdin is None or process.stdout is None:
            process.kill()
            process.wait()
            raise SpawnFailed("could not capture stdin/stdout of the server process")

        channel = LineChannel()
        reader = LineReader(process.stdout, channel, echo=self._echo)
        reader.start()
        threading.Thread(
            target=_drain_stderr,
            args=(process.stderr,),
            name="mc-stderr-reader",
            daemon=True,
        ).start()

        if self._channel is not None:
            self._channel.drop()
        self._process = process
        self._channel = channel
        self._reader = reader
        self._state = BridgeState.STARTING
        self.memory_mb = memory_mb
        self.started_at = datetime.now()
        logger.info(f"Started server with PID {process.pid}: {shlex.join(cmd)}")

    def _require_process(self):
        if self._process is None:
            raise ServerNotRunning("server has not been started")

    def _recv(self) -> str:
        try:
            return self._channel.recv()
        except BrokenPipe:
            self._state = BridgeState.DEAD
            raise

    def await_ready(self):
        """Block until the server prints its readiness line."""
        self._require_process()
        while True:
            line = self._recv()
            if READY_MARKER in line:
                self._state = BridgeState.READY
                logger.info(f"Server PID {self._process.pid} is ready")
                return

    def run_command(self, cmd: str):
        """Send a command without waiting for any reply.

        Output queued before the command is sent was not caused by it, so it
        is discarded first.
        """
        self._require_process()
        discarded = self._channel.drain()
        if discarded:
            logger.debug(f"Discarded {discarded} unsolicited output lines")

        if not cmd.endswith("\n"):
            cmd += "\n"
        try:
            self._process.stdin.write(cmd.encode("utf-8"))
            self._process.stdin.flush()
        except (OSError, ValueError) as e:
            raise CommandFailed(f"failed to send {cmd.strip()!r} to the server: {e}") from e

    def list_players(self) -> list[str]:
        """Return the names of the players currently online."""
        self.run_command(LIST_COMMAND)
        return parse_player_list(self._recv())

    def stop(self):
        """Ask the server to stop and wait for the process to exit."""
        self._require_process()
        previous_state = self._state
        self._state = BridgeState.STOPPING
        try:
            self.run_command(STOP_COMMAND)
        except CommandFailed as e:
            # The stop never reached a live server, so it is not stopping
            if self._process.poll() is not None:
                self._state = BridgeState.DEAD
            else:
                self._state = previous_state
            raise StopFailed(f"failed to send stop command: {e}") from e

        returncode = self._process.wait()
        self._state = BridgeState.STOPPED
        self._close_stdin()
        logger.info(f"Server PID {self._process.pid} exited with status {returncode}")

        if returncode < 0:
            raise ExitFailure(signal=-returncode)
        if returncode != 0:
            raise ExitFailure(code=returncode)

    def _close_stdin(self):
        try:
            self._process.stdin.close()
        except OSError:
            pass

    def _kill_if_alive(self):
        process = self._process
        if process.poll() is None:
            logger.warning(f"Server PID {process.pid} still alive, killing it")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            except OSError as e:
                raise RestartFailed(f"failed to kill server PID {process.pid}: {e}") from e
        process.wait()
        self._close_stdin()

    def _relaunch(self, memory_mb: int):
        self._spawn(memory_mb)
        self.await_ready()

    def restart(self):
        """Stop (or kill) the server and bring up a fresh one.

        Only meant as a recovery path after a failed operation.
        """
        logger.warning("Restarting server")
        if self._process is not None:
            try:
                self.stop()
            except BridgeError as e:
                logger.warning(f"Ignoring stop failure during restart: {e}")
            self._kill_if_alive()

        try:
            self._relaunch(self.max_memory_mb)
        except BridgeError as e:
            raise RestartFailed(f"failed to restart the server: {e}") from e

    def make_world_backup(self) -> Path:
        """Stop the server, archive the world, and start the server again.

        The server is brought back up whether or not archiving worked. When
        both fail, the error message carries both failures.
        """
        try:
            self.stop()
        except BridgeError as e:
            message = f"failed to stop the server before backing up: {e}"
            try:
                self.restart()
            except RestartFailed as restart_error:
                message += f"; additionally {restart_error}"
            raise BackupFailed(message) from e

        archive_path = None
        archive_error = None
        try:
            archive_path = create_world_archive(self.world_dir)
        except (OSError, tarfile.TarError) as e:
            archive_error = e

        try:
            self._relaunch(self.recovery_memory_mb)
        except BridgeError as e:
            if archive_error is not None:
                raise BackupFailed(
                    f"failed to create world archive: {archive_error}; "
                    f"additionally failed to restart the server: {e}"
                ) from archive_error
            raise RestartFailed(
                f"created {archive_path} but failed to restart the server: {e}"
            ) from e

        if archive_error is not None:
            raise BackupFailed(f"failed to create world archive: {archive_error}") from archive_error
        return archive_path
