"""
Test the web3 chain client against a stubbed provider surface.
"""

import asyncio

import pytest

from stacksave.chain.client import Web3ChainClient, decode_event
from stacksave.chain.types import (
    DepositedEvent,
    WithdrawnCompletedEvent,
    WithdrawnEarlyEvent,
)
from stacksave.core.config import settings
from stacksave.core.exceptions import ChainClientError, ConfigurationError, SubscriptionError


USER = "0xAbCdEf0000000000000000000000000000000001"
TX_HASH = bytes.fromhex("ab" * 32)


def make_log(**args):
    return {
        "args": {"goalId": 4, "user": USER, **args},
        "transactionHash": TX_HASH,
        "blockNumber": 123,
    }


class StubEvent:
    def __init__(self, logs):
        self.logs = logs
        self.ranges = []

    async def get_logs(self, from_block, to_block):
        self.ranges.append((from_block, to_block))
        logs, self.logs = self.logs, []
        return logs


class StubEvents:
    def __init__(self):
        self.Deposited = StubEvent([])
        self.WithdrawnCompleted = StubEvent([])
        self.WithdrawnEarly = StubEvent([])


class StubCall:
    def __init__(self, result):
        self.result = result

    async def call(self):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class StubFunctions:
    def __init__(self):
        self.goal_details = None

    def getGoalDetails(self, goal_id):
        return StubCall(self.goal_details)


class StubContract:
    def __init__(self):
        self.events = StubEvents()
        self.functions = StubFunctions()


class StubEth:
    def __init__(self):
        self.block = 100
        self.fail = False
        self.stub_contract = StubContract()

    @property
    def block_number(self):
        async def read():
            if self.fail:
                raise ConnectionError("rpc unavailable")
            return self.block
        return read()

    def contract(self, address, abi):
        return self.stub_contract


class StubProvider:
    async def disconnect(self):
        pass


class StubWeb3:
    def __init__(self):
        self.eth = StubEth()
        self.provider = StubProvider()


@pytest.fixture
def w3():
    return StubWeb3()


@pytest.fixture
async def client(w3):
    client = Web3ChainClient(w3=w3)
    client.poll_interval = 0
    yield client
    await client.close()


def test_decode_deposited():
    event = decode_event("Deposited", make_log(amount=100, vaultShares=99))

    assert isinstance(event, DepositedEvent)
    assert event.goal_id == 4
    assert event.user == USER.lower()
    assert event.tx_hash == "0x" + "ab" * 32
    assert event.block_number == 123
    assert event.recorded_amount == 100


def test_decode_withdrawn_completed():
    event = decode_event(
        "WithdrawnCompleted",
        make_log(principal=300, **{"yield": 40}, userYield=38, donatedYield=2),
    )

    assert isinstance(event, WithdrawnCompletedEvent)
    assert event.total_yield == 40
    assert event.recorded_amount == 338


def test_decode_withdrawn_early():
    event = decode_event(
        "WithdrawnEarly",
        make_log(amount=270, penalty=30, penaltyToRewards=15, penaltyToTreasury=15),
    )

    assert isinstance(event, WithdrawnEarlyEvent)
    assert event.recorded_amount == 270


def test_decode_unknown_event():
    with pytest.raises(ValueError):
        decode_event("Donated", make_log())


@pytest.mark.asyncio
async def test_read_goal_state(client, w3):
    goal_tuple = (4, USER, USER, 1, 1000, 86400, 250, 500, 1_700_000_000, 1_700_000_100, 0)
    w3.eth.stub_contract.functions.goal_details = (goal_tuple, 520, 20)

    state = await client.read_goal_state(4)

    assert state.goal.id == 4
    assert state.goal.exists
    assert state.current_value == 520
    assert state.mirror_fields() == {
        "deposited_amount": 500,
        "current_value": 520,
        "yield_earned": 20,
        "status": 0,
    }


@pytest.mark.asyncio
async def test_read_goal_state_wraps_errors(client, w3):
    w3.eth.stub_contract.functions.goal_details = RuntimeError("execution reverted")

    with pytest.raises(ChainClientError):
        await client.read_goal_state(4)


@pytest.mark.asyncio
async def test_subscribe_rejects_unknown_event(client):
    async def handler(event):
        pass

    with pytest.raises(SubscriptionError):
        await client.subscribe("Donated", handler)


@pytest.mark.asyncio
async def test_subscribe_fails_when_block_unreadable(client, w3):
    w3.eth.fail = True

    async def handler(event):
        pass

    with pytest.raises(SubscriptionError):
        await client.subscribe("Deposited", handler)


@pytest.mark.asyncio
async def test_poll_delivers_events_and_reports_transport_errors(client, w3):
    received = []
    delivered = asyncio.Event()
    errors = []
    failed = asyncio.Event()

    async def on_deposit(event):
        received.append(event)
        delivered.set()

    async def on_error(error):
        errors.append(error)
        failed.set()

    w3.eth.stub_contract.events.Deposited.logs = [make_log(amount=100, vaultShares=100)]
    await client.on_transport_error(on_error)
    await client.subscribe("Deposited", on_deposit)

    await asyncio.wait_for(delivered.wait(), timeout=1)
    assert received[0].amount == 100
    assert w3.eth.stub_contract.events.Deposited.ranges[0] == (100, 100)

    w3.eth.fail = True
    await asyncio.wait_for(failed.wait(), timeout=1)
    assert isinstance(errors[0], ConnectionError)


@pytest.mark.asyncio
async def test_cancel_during_dispatch_refetches_range(client, w3):
    entered = asyncio.Event()
    delivered = asyncio.Event()
    received = []

    async def blocking_handler(event):
        entered.set()
        await asyncio.Event().wait()

    async def on_deposit(event):
        received.append(event)
        delivered.set()

    deposited = w3.eth.stub_contract.events.Deposited
    deposited.logs = [make_log(amount=100, vaultShares=100)]
    await client.subscribe("Deposited", blocking_handler)
    await asyncio.wait_for(entered.wait(), timeout=1)

    await client.unsubscribe("Deposited")

    deposited.logs = [make_log(amount=100, vaultShares=100)]
    await client.subscribe("Deposited", on_deposit)
    await asyncio.wait_for(delivered.wait(), timeout=1)

    assert deposited.ranges[:2] == [(100, 100), (100, 100)]
    assert [event.amount for event in received] == [100]


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent(client):
    await client.unsubscribe("Deposited")
    await client.remove_transport_error_handler()


def test_invalid_contract_address(w3, monkeypatch):
    monkeypatch.setattr(settings, "stacksave_contract_address", "not-an-address")

    with pytest.raises(ConfigurationError):
        Web3ChainClient(w3=w3)
