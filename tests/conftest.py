"""
Shared fixtures for the sync engine tests.
"""

import asyncio
from typing import List

import pytest

from stacksave.sync.reconciliation import ReconciliationEngine
from stacksave.sync.supervisor import SubscriptionSupervisor
from tests.fakes import FakeChainClient, InMemoryMirrorStore


class RecordingSleep:
    """Sleep replacement that records delays, optionally blocking until released."""

    def __init__(self, block: bool = False):
        self.delays: List[float] = []
        self.block = block
        self.gate = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.block:
            await self.gate.wait()


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def chain_client():
    return FakeChainClient()


@pytest.fixture
def store():
    return InMemoryMirrorStore()


@pytest.fixture
def engine(chain_client, store):
    return ReconciliationEngine(chain_client, store)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def supervisor(chain_client, engine, recording_sleep):
    return SubscriptionSupervisor(
        chain_client,
        engine,
        max_reconnect_attempts=5,
        reconnect_delay=5.0,
        sleep=recording_sleep,
    )
