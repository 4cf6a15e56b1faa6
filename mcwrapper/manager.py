"""
Shared access to the Minecraft server.

The bridge is not safe for concurrent use, while HTTP requests and the
operator console reach it from several threads. ServerManager puts one lock
around every bridge operation and holds it for the whole operation, from the
command write to the matching response line.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from .backup import prune_old_archives
from .bridge import BridgeState, ProcessBridge
from .config import config
from .errors import BridgeError, ServerNotRunning
from .models import BackupRecord
from .monitor import get_directory_size, get_process_metrics

logger = logging.getLogger(__name__)

SHUTDOWN_LOCK_TIMEOUT = 30


class ServerManager:
    """Serializes all access to the one supervised server."""

    def __init__(self, bridge: Optional[ProcessBridge] = None):
        self._bridge = bridge
        self._lock = threading.Lock()

    @property
    def is_launched(self) -> bool:
        return self._bridge is not None

    def launch(self) -> ProcessBridge:
        """Start the configured server and wait until it is ready."""
        with self._lock:
            logger.info(
                f"Launching {config.server_jar_path} with {config.max_memory_buffer_size}MB heap"
            )
            bridge = ProcessBridge.start(
                config.max_memory_buffer_size,
                config.server_jar_path,
                runtime=config.java_path,
                world_dir=config.world_dir,
            )
            self._bridge = bridge
            bridge.await_ready()
            return bridge

    def _require_bridge(self) -> ProcessBridge:
        if self._bridge is None:
            raise ServerNotRunning("server has not been launched")
        return self._bridge

    def run_command(self, command: str):
        with self._lock:
            self._require_bridge().run_command(command)

    def list_players(self) -> list[str]:
        with self._lock:
            return self._require_bridge().list_players()

    def stop(self):
        with self._lock:
            self._require_bridge().stop()

    def make_world_backup(self) -> Path:
        """Back up the world and record the attempt."""
        with self._lock:
            bridge = self._require_bridge()
            try:
                archive_path = bridge.make_world_backup()
            except BridgeError as e:
                BackupRecord.create(success=False, error=str(e))
                raise

            BackupRecord.create(path=str(archive_path), success=True)
            if config.backup_keep > 0:
                prune_old_archives(bridge.world_dir, config.backup_keep)
            return archive_path

    def status(self) -> dict:
        """Snapshot of the server state. Does not wait for the lock."""
        bridge = self._bridge
        if bridge is None:
            return {"state": "not_launched", "running": False, "pid": None}

        running = bridge.is_alive
        result = {
            "state": bridge.state.value,
            "running": running,
            "pid": bridge.pid if running else None,
            "memory_limit_mb": bridge.memory_mb,
            "started_at": bridge.started_at.isoformat() if bridge.started_at else None,
            "uptime_seconds": (
                (datetime.now() - bridge.started_at).total_seconds()
                if running and bridge.started_at
                else 0
            ),
            "world_dir": str(bridge.world_dir),
            "world_size_mb": round(get_directory_size(bridge.world_dir), 1),
        }
        if running:
            result.update(get_process_metrics(bridge.pid))
        return result

    def shutdown(self):
        """Stop the server on wrapper exit, if it is still running."""
        bridge = self._bridge
        if bridge is None or not bridge.is_alive:
            return
        if bridge.state in (BridgeState.STOPPING, BridgeState.STOPPED):
            return

        if not self._lock.acquire(timeout=SHUTDOWN_LOCK_TIMEOUT):
            logger.error("Another server operation is still running, not stopping the server")
            return
        try:
            logger.info("Stopping Minecraft server...")
            bridge.stop()
        except BridgeError as e:
            logger.error(f"Failed to stop server on shutdown: {e}")
        finally:
            self._lock.release()


# Global server manager instance
server_manager = ServerManager()
