"""
Shared pytest fixtures for the Quorum test suite.
"""

import pytest

from quorum_core.config import NetworkConfig, ScheduleConfig
from quorum_core.gateway import InMemoryLedgerGateway
from quorum_core.key_set import KeySet
from quorum_core.keys import KeyPair
from quorum_core.registry import ScheduleRegistry
from quorum_core.transfer import TransferPayload, coins_to_units

OPERATOR_ID = "0.0.2"
ADMIN = "admin-key"
START = 1_700_000_000.0


class FakeClock:
    """Settable clock shared by the registry and the ledger."""

    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def operator_key():
    return KeyPair.generate()


@pytest.fixture
def network(operator_key):
    """Network config with a funded operator."""
    return NetworkConfig(
        operator_id=OPERATOR_ID,
        operator_key=operator_key.private_hex,
        operator_balance=coins_to_units("5000"),
    )


@pytest.fixture
def gateway(network, clock):
    return InMemoryLedgerGateway(network, clock=clock)


@pytest.fixture
def key_set():
    """2-of-3 key list with members A, B, C."""
    return KeySet(["A", "B", "C"], 2)


@pytest.fixture
def accounts(gateway, key_set):
    """(multisig_account, receiver_account); multisig holds 1000 coins."""
    multisig = gateway.create_account(key_set, coins_to_units("1000"))
    receiver = gateway.create_account(None, 0)
    return multisig, receiver


@pytest.fixture
def transfer(accounts):
    """10 coins from the multisig account to the receiver."""
    multisig, receiver = accounts
    return TransferPayload.between(multisig, receiver, coins_to_units("10"))


@pytest.fixture
def registry(gateway, clock):
    return ScheduleRegistry(gateway, ScheduleConfig(), clock=clock)


@pytest.fixture
def schedule_id(registry, transfer, key_set):
    """A PENDING schedule with a one hour ttl and ADMIN as admin authority."""
    return registry.create(
        transfer, key_set, OPERATOR_ID, admin_authority=ADMIN,
        memo="Scheduled TX With Multi Signature Account", ttl=3600,
    )
