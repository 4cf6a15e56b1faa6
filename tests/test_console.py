"""Tests for the operator console forwarder."""

import io

from mcwrapper.console import ConsoleForwarder
from mcwrapper.errors import CommandFailed


class RecordingManager:
    def __init__(self, fail_on=()):
        self.commands = []
        self._fail_on = fail_on

    def run_command(self, command):
        if command in self._fail_on:
            raise CommandFailed(f"failed to send {command!r}")
        self.commands.append(command)


def test_forwards_each_line():
    manager = RecordingManager()
    forwarder = ConsoleForwarder(manager, io.StringIO("/say hi\n\n/time set day\r\n"))
    forwarder.run()

    assert manager.commands == ["/say hi", "/time set day"]
    assert forwarder.forwarded == 2


def test_keeps_going_after_a_failed_command():
    manager = RecordingManager(fail_on=("/broken",))
    forwarder = ConsoleForwarder(manager, io.StringIO("/broken\n/say still here\n"))
    forwarder.run()

    assert manager.commands == ["/say still here"]
