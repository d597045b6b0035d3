from __future__ import annotations

import socket

import pytest

from ackwait.net import StreamConnection


class ScriptedRandom:
    """Stands in for random.Random; random() returns the given values in order."""

    def __init__(self, values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


@pytest.fixture
def scripted_rng():
    return ScriptedRandom


@pytest.fixture
def conn_pair():
    a, b = socket.socketpair()
    left, right = StreamConnection(a, "left"), StreamConnection(b, "right")
    yield left, right
    left.close()
    right.close()
