"""
Shared fixtures: a controllable clock and queue components wired to the
in-memory transport.
"""

from typing import Dict, List

import pytest

from quelea.client.consumer import Consumer
from quelea.client.memory import InMemoryTransport
from quelea.client.producer import Producer
from quelea.core.events import EventBus
from quelea.core.interfaces import ITransport
from quelea.core.models import LeasedItem
from quelea.worker.orchestrator import Orchestrator
from quelea.worker.pipeline import Pipeline


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport(clock):
    return InMemoryTransport(clock=clock)


@pytest.fixture
def producer(transport):
    return Producer(transport)


@pytest.fixture
def consumer(transport, clock):
    return Consumer(transport, clock=clock)


@pytest.fixture
def events():
    """EventBus that records events instead of logging them."""
    recorded = []
    bus = EventBus(sinks=[recorded.append])
    bus.recorded = recorded
    return bus


@pytest.fixture
def orchestrator(consumer, events):
    return Orchestrator(consumer, Pipeline(concurrency=4), events=events)


class FailingTransport(ITransport):
    """Transport whose every call raises the given error."""

    def __init__(self, error: Exception):
        self.error = error
        self.sent = 0

    async def send(self, body: str, attributes: Dict[str, str], delay_seconds: int = 0) -> str:
        self.sent += 1
        raise self.error

    async def receive(self, max_batch: int, wait_seconds: int, lease_seconds: int) -> List[LeasedItem]:
        raise self.error

    async def acknowledge(self, lease_token: str):
        raise self.error

    async def release(self, lease_token: str):
        raise self.error


@pytest.fixture
def failing_transport():
    return FailingTransport
