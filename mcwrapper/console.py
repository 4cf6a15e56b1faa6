"""
Operator console.

Forwards lines typed on the wrapper's own stdin to the Minecraft server, so
the wrapper can be used interactively like a plain server console.
"""

import logging
import sys
import threading

from .errors import BridgeError

logger = logging.getLogger(__name__)


class ConsoleForwarder(threading.Thread):
    """Background thread passing stdin lines to the server as commands."""

    def __init__(self, manager, stream=None):
        super().__init__(name="mc-console", daemon=True)
        self._manager = manager
        self._stream = stream if stream is not None else sys.stdin
        self.forwarded = 0

    def run(self):
        for line in self._stream:
            command = line.rstrip("\r\n")
            if not command:
                continue
            try:
                self._manager.run_command(command)
                self.forwarded += 1
            except BridgeError as e:
                logger.error(f"Failed to pass console command to the server: {e}")
        logger.info("Console input closed")
