"""
Output draining for the supervised server.

A LineReader thread reads the server's stdout line by line for the whole life
of the process and pushes each decoded line onto a LineChannel. The bridge is
the only consumer of that channel. When stdout hits EOF the channel is closed,
which is how consumers learn that the server is gone.
"""

import logging
import queue
import sys
import threading
from typing import Callable, Optional

from .errors import BrokenPipe

logger = logging.getLogger(__name__)

# Queued after the last line once the producer side is finished
_CLOSED = object()


class ReceiverGone(Exception):
    """The consumer dropped its end of the channel."""


class LineChannel:
    """Unbounded FIFO of output lines with one producer and one consumer."""

    def __init__(self):
        self._queue: queue.Queue = queue.Queue()
        self._dropped = threading.Event()

    def send(self, line: str):
        """Push a line. Raises ReceiverGone once the consumer has dropped."""
        if self._dropped.is_set():
            raise ReceiverGone("line channel receiver was dropped")
        self._queue.put(line)

    def close(self):
        """Mark the producer side finished. Lines already sent stay readable."""
        self._queue.put(_CLOSED)

    def drop(self):
        """Give up the consumer side. Later sends fail."""
        self._dropped.set()

    def recv(self) -> str:
        """Block until the next line arrives.

        Raises BrokenPipe when the producer has closed and every line sent
        before that has been consumed.
        """
        item = self._queue.get()
        if item is _CLOSED:
            # Keep the channel closed for any later receive
            self._queue.put(_CLOSED)
            raise BrokenPipe("server output stream closed")
        return item

    def try_recv(self) -> Optional[str]:
        """Return the next line if one is queued right now, else None."""
        try:
            item = self._queue.get_nowait()
        except queue.Empty:
            return None
        if item is _CLOSED:
            self._queue.put(_CLOSED)
            return None
        return item

    def drain(self) -> int:
        """Discard every line queued right now. Never blocks."""
        discarded = 0
        while self.try_recv() is not None:
            discarded += 1
        return discarded


def echo_to_console(line: str):
    """Print a server line on the wrapper's own stdout."""
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


class LineReader(threading.Thread):
    """Background thread forwarding stdout lines of the server to a channel."""

    def __init__(
        self,
        stream,
        channel: LineChannel,
        echo: Optional[Callable[[str], None]] = echo_to_console,
        name: str = "mc-stdout-reader",
    ):
        super().__init__(name=name, daemon=True)
        self._stream = stream
        self._channel = channel
        self._echo = echo
        self.lines_read = 0

    def run(self):
        try:
            for raw in iter(self._stream.readline, b""):
                try:
                    line = raw.decode("utf-8").rstrip("\r\n")
                except UnicodeDecodeError:
                    logger.debug(f"Skipping undecodable output line: {raw!r}")
                    continue

                if self._echo:
                    self._echo(line)

                try:
                    self._channel.send(line)
                except ReceiverGone:
                    logger.debug("Line channel receiver dropped, stopping reader")
                    break
                self.lines_read += 1
        except (OSError, ValueError) as e:
            # ValueError: read on a closed file
            logger.warning(f"Server output stream failed: {e}")
        finally:
            self._channel.close()
            logger.debug(f"Reader exiting after {self.lines_read} lines")
