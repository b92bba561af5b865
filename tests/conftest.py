from concurrent.futures import ThreadPoolExecutor

import pytest

from erc20sync.contract.erc20 import ERC20Token
from erc20sync.coordinator import SyncCoordinator
from erc20sync.model.db import create_db_engine
from erc20sync.model.storage import Erc20Storage
from erc20sync.syncer.allowance import AllowanceCoordinator
from erc20sync.syncer.balance import BalanceSyncEngine
from erc20sync.syncer.history import HistorySyncEngine

from fakes import TOKEN, WALLET, FakeIndexer, FakeLedger


@pytest.fixture
def db_engine():
    """A fresh in-memory database per test."""
    engine = create_db_engine('sqlite://', echo=False)
    yield engine
    engine.dispose()


@pytest.fixture
def storage(db_engine):
    return Erc20Storage(db_engine, TOKEN, WALLET)


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=4)
    yield pool
    pool.shutdown(wait=False)


@pytest.fixture
def ledger():
    fake = FakeLedger()
    yield fake
    # never leave a worker blocked on the gate
    if fake.gate is not None:
        fake.gate.set()


@pytest.fixture
def indexer():
    return FakeIndexer()


@pytest.fixture
def token(ledger):
    return ERC20Token(ledger, TOKEN)


@pytest.fixture
def balance_engine(token, storage, executor):
    return BalanceSyncEngine(token, WALLET, storage, executor)


@pytest.fixture
def history_engine(indexer, storage, executor):
    return HistorySyncEngine(indexer, storage, WALLET, TOKEN, executor)


@pytest.fixture
def allowance_coordinator(token, executor):
    return AllowanceCoordinator(token, WALLET, executor)


@pytest.fixture
def coordinator(ledger, token, balance_engine, history_engine, allowance_coordinator, executor):
    kit = SyncCoordinator(ledger, token, balance_engine, history_engine, allowance_coordinator, executor)
    yield kit
    kit.stop()
