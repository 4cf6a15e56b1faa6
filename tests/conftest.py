"""Pytest configuration and shared fixtures."""

import json
import os
import sys
import tempfile
import time
from pathlib import Path

import pytest

# Keep wrapper data (database, logs, config file) out of the home directory.
# Must happen before mcwrapper.config is imported.
os.environ.setdefault("MC_WRAPPER_DATA_DIR", tempfile.mkdtemp(prefix="mcwrapper-tests-"))
os.environ["CONSOLE_ENABLED"] = "false"

from mcwrapper.bridge import ProcessBridge  # noqa: E402
from mcwrapper.models import initialize_db  # noqa: E402

FAKE_SERVER = Path(__file__).parent / "fake_server.py"


@pytest.fixture
def fake_java(tmp_path) -> Path:
    """Executable used as the java runtime; runs the fake server instead."""
    shim = tmp_path / "fake-java"
    shim.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_SERVER}" "$@"\n')
    shim.chmod(0o755)
    return shim


@pytest.fixture
def argv_file(tmp_path) -> Path:
    """File the fake server appends its argv to, one JSON list per launch."""
    return tmp_path / "argv.jsonl"


@pytest.fixture
def make_jar(tmp_path, argv_file):
    """Write a scenario file that the fake server reads as its jar."""

    def _make(**scenario) -> Path:
        scenario.setdefault("argv_file", str(argv_file))
        jar = tmp_path / "server.jar"
        jar.write_text(json.dumps(scenario))
        return jar

    return _make


@pytest.fixture
def start_bridge(fake_java, make_jar):
    """Start a bridge against the fake server. Leftover processes are killed."""
    bridges = []

    def _start(max_memory_mb: int = 512, **scenario) -> ProcessBridge:
        jar = make_jar(**scenario)
        bridge = ProcessBridge.start(max_memory_mb, jar, runtime=str(fake_java), echo=None)
        bridges.append(bridge)
        return bridge

    yield _start

    for bridge in bridges:
        if bridge.is_alive:
            bridge._process.kill()
            bridge._process.wait()


@pytest.fixture
def world_dir(tmp_path) -> Path:
    """A small world directory next to the fake jar."""
    world = tmp_path / "world"
    (world / "region").mkdir(parents=True)
    (world / "level.dat").write_bytes(b"\x0a\x00\x00level")
    (world / "region" / "r.0.0.mca").write_bytes(b"\x00" * 128)
    return world


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database for the models."""
    initialize_db(tmp_path / "mcwrapper.db")


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the timeout passes."""

    def _wait_for(predicate, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    return _wait_for
