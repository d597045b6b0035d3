from __future__ import annotations

import logging
import random
import threading

import pytest

from ackwait.checksum import ChecksumFault
from ackwait.loopback import run_loopback
from ackwait.net import StreamConnection
from ackwait.sender import StopAndWaitSender
from ackwait.server import Listener


@pytest.fixture
def listener():
    lst = Listener.bind("127.0.0.1", 0)
    t = threading.Thread(target=lst.serve_forever, daemon=True)
    t.start()
    yield lst
    lst.close()
    t.join(timeout=5)


def test_concurrent_connections_are_isolated(listener, caplog):
    caplog.set_level(logging.INFO, logger="ackwait")
    host, port = listener.address
    results = {}
    sequences = {"a": [f"a{i}" for i in range(30)], "b": [f"b{i}" for i in range(40)]}

    def client(name, messages, seed):
        fault = ChecksumFault(rate=0.3, rng=random.Random(seed), on_retries=False)
        with StreamConnection.connect(host, port, timeout=5) as conn:
            results[name] = StopAndWaitSender(conn, messages, fault=fault).run()

    a = threading.Thread(target=client, args=("a", sequences["a"], 1))
    b = threading.Thread(target=client, args=("b", sequences["b"], 2))
    a.start()
    b.start()
    a.join(timeout=10)
    b.join(timeout=10)

    assert results["a"].messages == 30
    assert results["b"].messages == 40
    for m in results.values():
        assert m.attempts == m.messages + m.naks
        assert m.naks == m.faults_injected

    # each handler thread must have seen exactly one client's messages, in order
    seen: dict[str, list[str]] = {}
    for rec in caplog.records:
        if rec.msg == "received message %r" and rec.threadName.startswith("receiver-"):
            got = seen.setdefault(rec.threadName, [])
            if not got or got[-1] != rec.args[0]:
                got.append(rec.args[0])
    assert sorted(seen.values()) == [sequences["a"], sequences["b"]]


def test_slow_connection_does_not_block_accept(listener):
    host, port = listener.address
    idle = StreamConnection.connect(host, port, timeout=5)
    try:
        with StreamConnection.connect(host, port, timeout=5) as conn:
            metrics = StopAndWaitSender(conn, ["still served"]).run()
        assert metrics.messages == 1
    finally:
        idle.close()


def test_bind_failure_raises():
    first = Listener.bind("127.0.0.1", 0)
    try:
        with pytest.raises(OSError):
            taken = Listener.bind("127.0.0.1", first.address[1])
            taken.close()
    finally:
        first.close()


def test_close_stops_accept_loop():
    lst = Listener.bind("127.0.0.1", 0)
    t = threading.Thread(target=lst.serve_forever, daemon=True)
    t.start()
    lst.close()
    t.join(timeout=5)
    assert not t.is_alive()


def test_loopback_converges():
    r = run_loopback(["hello", "world", ""], fault_rate=0.5, seed=7, first_attempt_only=True)
    assert r.messages == 3
    assert r.attempts == 3 + r.naks
    assert r.naks == r.faults_injected


def test_loopback_without_faults():
    r = run_loopback(["one", "two"])
    assert (r.messages, r.attempts, r.naks) == (2, 2, 0)
