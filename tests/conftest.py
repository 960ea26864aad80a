"""
Shared fixtures: fake connections and a broker bound to the running loop
"""
import asyncio
import json
import random

import pytest
import pytest_asyncio
from websockets.protocol import State

from server_data import ServerData
from session_broker import SessionBroker

GRACE_PERIOD = 0.05


class FakeConnection:
    """Stands in for a websockets ServerConnection; records every frame sent to it."""

    def __init__(self, name: str):
        self.name = name
        self.remote_address = (name, 0)
        self.state = State.OPEN
        self.sent = []

    async def send(self, message):
        self.sent.append(message)

    def close(self):
        self.state = State.CLOSED

    def packets(self):
        return [json.loads(message) for message in self.sent]

    def __repr__(self):
        return f"FakeConnection({self.name!r})"


class SequenceRandom(random.Random):
    """Returns the queued values from randint, then falls back to real randomness."""

    def __init__(self, values):
        super().__init__(0)
        self._values = list(values)

    def randint(self, a, b):
        if self._values:
            return self._values.pop(0)
        return super().randint(a, b)


@pytest.fixture
def laptop():
    return FakeConnection("laptop")


@pytest.fixture
def phone():
    return FakeConnection("phone")


@pytest.fixture
def other_phone():
    return FakeConnection("other-phone")


@pytest_asyncio.fixture
async def data():
    return ServerData(asyncio.get_running_loop(), grace_period=GRACE_PERIOD)


@pytest_asyncio.fixture
async def store(data):
    return data.sessions


@pytest_asyncio.fixture
async def broker(data):
    return SessionBroker(data)


async def wait_for_grace_period():
    await asyncio.sleep(GRACE_PERIOD * 4)
