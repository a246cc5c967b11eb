import asyncio

import pytest

from coderoom.auth import InMemoryAuthenticator
from coderoom.errors import UnsupportedLanguage
from coderoom.execution import ExecutionResult, JobState, default_policies
from coderoom.gateway import EventGateway
from coderoom.rooms import RoomRegistry


class FakeWebSocket:
    """Records everything the server sends"""

    def __init__(self):
        self.accepted = False
        self.closed = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.closed:
            raise RuntimeError("WebSocket is closed")
        self.sent.append(message)

    def events(self, name=None):
        return [m for m in self.sent if name is None or m["event"] == name]

    def acks(self):
        return [m["data"] for m in self.sent if m["event"] == "ack"]

    def clear(self):
        self.sent.clear()


class FakeScheduler:
    """Stands in for ExecutionScheduler without spawning processes"""

    def __init__(self, result=None):
        self.policies = default_policies()
        self.calls = []
        self.result = result or ExecutionResult(
            ok=True, stdout="2\n", stderr="", exitCode=0, status=JobState.COMPLETED
        )

    def submit(self, language, source, room=None):
        if language not in self.policies:
            raise UnsupportedLanguage(language)
        self.calls.append((language, source, room))
        return asyncio.create_task(self._complete())

    async def run(self, language, source, room=None):
        return await self.submit(language, source, room)

    def active_jobs(self):
        return []

    async def _complete(self):
        await asyncio.sleep(0)
        return self.result


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return RoomRegistry(idle_ttl=60.0, clock=clock)


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def authenticator():
    return InMemoryAuthenticator()


@pytest.fixture
def gateway(registry, fake_scheduler, authenticator):
    return EventGateway(registry, fake_scheduler, authenticator=authenticator)


@pytest.fixture
def connect(gateway):
    """Open a fake connection; returns (connection_id, websocket)"""
    async def _connect(token=None):
        websocket = FakeWebSocket()
        connection_id = await gateway.connect(websocket, token)
        return connection_id, websocket
    return _connect

