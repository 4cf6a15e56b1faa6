"""
mcwrapper - An HTTP-controlled wrapper around a Minecraft server process.

Runs the server jar as a child process, drains its console output, and
exposes stop, player listing, console commands, and world backups over a
small REST API.
"""

__version__ = "0.1.0"
