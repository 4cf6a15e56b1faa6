"""
mcwrapper FastAPI application.

Launches the Minecraft server on startup and exposes a small REST API over
it: stopping the server (which also shuts the API down), listing online
players, sending console commands, taking world backups, and reporting
status. Routes that talk to the server are plain functions so FastAPI runs
them in its threadpool; the server manager serializes them.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, HTTPException, Query, Response
from pydantic import BaseModel, Field

from .config import config
from .console import ConsoleForwarder
from .errors import BridgeError, ServerNotRunning, ShutdownAlreadyRequested
from .manager import server_manager
from .models import BackupRecord, initialize_db
from .shutdown import ShutdownHandoff

# Configure logging with rotation
log_formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

# Rotating file handler (auto-compaction)
file_handler = RotatingFileHandler(
    config.wrapper_log,
    maxBytes=config.log_max_bytes,
    backupCount=config.log_backup_count,
)
file_handler.setFormatter(log_formatter)

# Console handler
console_handler = logging.StreamHandler()
console_handler.setFormatter(log_formatter)

# Configure root logger
logging.basicConfig(
    level=logging.INFO,
    handlers=[file_handler, console_handler],
)
logger = logging.getLogger(__name__)

# Initialize database
initialize_db()

# Fired by /stop once the Minecraft server has exited
shutdown_handoff = ShutdownHandoff()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting mcwrapper...")
    try:
        await asyncio.to_thread(server_manager.launch)
    except BridgeError as e:
        logger.error(f"Failed to start the Minecraft server: {e}")
        raise

    if config.console_enabled:
        ConsoleForwarder(server_manager).start()

    yield

    # Shutdown
    logger.info("Shutting down mcwrapper...")
    await asyncio.to_thread(server_manager.shutdown)


app = FastAPI(
    title="mcwrapper",
    description="HTTP control surface for a Minecraft server process",
    version="0.1.0",
    lifespan=lifespan,
)


# Pydantic models for API
class CommandRequest(BaseModel):
    command: str = Field(..., min_length=1, description="Console command, e.g. '/say hi'")


class BackupResponse(BaseModel):
    message: str
    path: str


def _server_error(action: str, error: Exception) -> HTTPException:
    message = f"Something went wrong while trying to {action}: {error}"
    logger.error(message)
    return HTTPException(status_code=500, detail=message)


# Server control
@app.get("/stop", status_code=204)
def stop_server():
    """Stop the Minecraft server, then shut down the API server."""
    try:
        server_manager.stop()
    except BridgeError as e:
        raise _server_error("stop the server", e)

    try:
        shutdown_handoff.send()
    except ShutdownAlreadyRequested as e:
        raise _server_error("signal the API server to shut down", e)

    return Response(status_code=204)


@app.get("/list-players", response_model=list[str])
def list_players():
    """List the names of the players currently online."""
    try:
        return server_manager.list_players()
    except BridgeError as e:
        raise _server_error("fetch the list of players online", e)


@app.post("/api/command", status_code=202)
def send_command(data: CommandRequest):
    """Send a console command to the server without waiting for output."""
    try:
        server_manager.run_command(data.command)
    except ServerNotRunning as e:
        raise HTTPException(status_code=409, detail=str(e))
    except BridgeError as e:
        raise _server_error("send the command", e)
    return {"status": "sent", "command": data.command}


# Backups
@app.get("/backup", response_model=BackupResponse)
@app.post("/api/backups", response_model=BackupResponse)
def create_backup():
    """Stop the server, archive the world, and start the server again."""
    try:
        archive_path = server_manager.make_world_backup()
    except BridgeError as e:
        raise _server_error("create a world backup", e)
    return {"message": f"Created backup at {archive_path}", "path": str(archive_path)}


@app.get("/api/backups")
async def list_backups(limit: int = Query(20, ge=1, le=100)):
    """List recent backup attempts, newest first."""
    records = (
        BackupRecord.select()
        .order_by(BackupRecord.created_at.desc(), BackupRecord.id.desc())
        .limit(limit)
    )
    return [record.to_dict() for record in records]


# Status
@app.get("/api/status")
def get_status():
    """Get the server state and resource usage."""
    return server_manager.status()
