"""
Entry point for running the wrapper via `python -m mcwrapper`.

Starts the FastAPI server with uvicorn. The API server shuts itself down once
the /stop route has stopped the Minecraft server.
"""

import logging
import sys
import threading

import uvicorn

from .config import config
from .main import shutdown_handoff

logger = logging.getLogger(__name__)

STARTUP_FAILURE = 3


def _exit_on_handoff(server: uvicorn.Server):
    shutdown_handoff.wait()
    logger.info("Minecraft server stopped, shutting down the API server")
    server.should_exit = True


def main():
    """Run the wrapper server."""
    if not config.config_file.exists():
        config.save()

    server = uvicorn.Server(
        uvicorn.Config(
            "mcwrapper.main:app",
            host=config.host,
            port=config.port,
            reload=False,
        )
    )
    threading.Thread(
        target=_exit_on_handoff, args=(server,), name="shutdown-handoff", daemon=True
    ).start()
    server.run()

    if not server.started:
        sys.exit(STARTUP_FAILURE)


if __name__ == "__main__":
    main()
