"""Tests for LineChannel and LineReader."""

import io
import os
import threading

import pytest

from mcwrapper.errors import BrokenPipe
from mcwrapper.reader import LineChannel, LineReader, ReceiverGone


# ==============================================================================
# LineChannel
# ==============================================================================


def test_channel_preserves_order():
    channel = LineChannel()
    for i in range(100):
        channel.send(f"line {i}")

    assert [channel.recv() for _ in range(100)] == [f"line {i}" for i in range(100)]


def test_closed_channel_delivers_buffered_lines_first():
    channel = LineChannel()
    channel.send("a")
    channel.send("b")
    channel.close()

    assert channel.recv() == "a"
    assert channel.recv() == "b"
    with pytest.raises(BrokenPipe):
        channel.recv()
    # Stays closed
    with pytest.raises(BrokenPipe):
        channel.recv()


def test_try_recv_on_empty_channel_returns_none():
    channel = LineChannel()
    assert channel.try_recv() is None

    channel.send("x")
    assert channel.try_recv() == "x"
    assert channel.try_recv() is None


def test_drain_discards_queued_lines_without_blocking():
    channel = LineChannel()
    for line in ("chatter 1", "chatter 2", "chatter 3"):
        channel.send(line)

    assert channel.drain() == 3
    assert channel.drain() == 0
    assert channel.try_recv() is None


def test_drain_keeps_the_channel_closed():
    channel = LineChannel()
    channel.send("chatter")
    channel.close()

    assert channel.drain() == 1
    with pytest.raises(BrokenPipe):
        channel.recv()


def test_recv_unblocks_with_broken_pipe_when_producer_closes():
    channel = LineChannel()
    errors = []

    def consume():
        try:
            channel.recv()
        except BrokenPipe as e:
            errors.append(e)

    consumer = threading.Thread(target=consume)
    consumer.start()
    channel.close()
    consumer.join(timeout=5)

    assert not consumer.is_alive()
    assert len(errors) == 1


def test_send_after_drop_raises():
    channel = LineChannel()
    channel.drop()
    with pytest.raises(ReceiverGone):
        channel.send("late line")


# ==============================================================================
# LineReader
# ==============================================================================


def test_reader_forwards_pipe_lines_in_order():
    read_fd, write_fd = os.pipe()
    channel = LineChannel()
    reader = LineReader(os.fdopen(read_fd, "rb"), channel, echo=None)
    reader.start()

    with os.fdopen(write_fd, "wb") as writer:
        for i in range(500):
            writer.write(f"[Server thread/INFO]: event {i}\n".encode())

    received = [channel.recv() for _ in range(500)]
    assert received == [f"[Server thread/INFO]: event {i}" for i in range(500)]
    with pytest.raises(BrokenPipe):
        channel.recv()
    reader.join(timeout=5)
    assert not reader.is_alive()


def test_reader_skips_undecodable_lines():
    stream = io.BytesIO(b"first\n\xff\xfe broken\nsecond\r\n")
    channel = LineChannel()
    reader = LineReader(stream, channel, echo=None)
    reader.run()

    assert channel.recv() == "first"
    assert channel.recv() == "second"
    with pytest.raises(BrokenPipe):
        channel.recv()
    assert reader.lines_read == 2


def test_reader_echoes_lines():
    echoed = []
    stream = io.BytesIO(b"hello\nworld\n")
    reader = LineReader(stream, LineChannel(), echo=echoed.append)
    reader.run()

    assert echoed == ["hello", "world"]


def test_reader_stops_when_receiver_dropped():
    stream = io.BytesIO(b"one\ntwo\nthree\n")
    channel = LineChannel()
    channel.drop()
    reader = LineReader(stream, channel, echo=None)
    reader.run()

    assert reader.lines_read == 0
    # Nothing past the first line was consumed
    assert stream.read() == b"two\nthree\n"
