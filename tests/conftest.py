"""
Shared fixtures for relay tests.
"""

import json

import pytest

from backend import RelayBackend
from message_router import MessageRouter


class FakeConnection:
    """Stands in for a transport connection: records what it was sent."""

    def __init__(self, name="conn", is_open=True):
        self.name = name
        self.is_open = is_open
        self.sent = []

    def send(self, payload):
        if not self.is_open:
            return False
        self.sent.append(payload)
        return True

    def messages(self):
        return [json.loads(payload) for payload in self.sent]

    def __repr__(self):
        return f"FakeConnection({self.name!r})"


@pytest.fixture
def backend():
    return RelayBackend()


@pytest.fixture
def router(backend):
    return MessageRouter(backend)


@pytest.fixture
def make_connection():
    def factory(name="conn", is_open=True):
        return FakeConnection(name, is_open)
    return factory
