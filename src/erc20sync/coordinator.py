import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import List, Optional

from . import config
from .contract.erc20 import ERC20Token, TransactionData
from .lib.address import Address
from .lib.stream import LatestValueStream
from .model.db import create_db_engine
from .model.storage import Erc20Storage
from .network.etherscan import EtherscanService
from .network.ledger import Web3Ledger
from .syncer.allowance import AllowanceCoordinator
from .syncer.balance import BalanceSyncEngine, BalanceSynced, BalanceSyncFailed
from .syncer.history import HistorySyncEngine, HistorySynced
from .syncer.types import LATEST, NotSynced, Synced, Syncing, SyncState, Transaction, TransactionKey


class SyncCoordinator:
    """
        Keeps balance, transfer history and the local sync state of one ERC20
        token for one address. The coordinator is the only writer of the local
        sync state and of the balance; the engines report to it through their
        event channels.
    """

    def __init__(self, ledger, token: ERC20Token, balance_engine: BalanceSyncEngine,
                 history_engine: HistorySyncEngine, allowance_coordinator: AllowanceCoordinator,
                 executor: Executor):
        self._ledger = ledger
        self._token = token
        self._balance_engine = balance_engine
        self._history_engine = history_engine
        self._allowance_coordinator = allowance_coordinator
        self._executor = executor
        self._lock = threading.RLock()
        self._running = False
        self._subscriptions = []
        self._logger = logging.getLogger()

        self.sync_state_stream = LatestValueStream(NotSynced())
        balance = balance_engine.balance
        self.balance_stream = LatestValueStream() if balance is None else LatestValueStream(balance)

    @property
    def contract_address(self) -> Address:
        return self._token.address

    @property
    def ledger(self):
        return self._ledger

    @property
    def running(self) -> bool:
        return self._running

    @property
    def sync_state(self) -> SyncState:
        return self.sync_state_stream.value

    @property
    def balance(self) -> Optional[int]:
        return self.balance_stream.value

    @property
    def chain_sync_state(self) -> SyncState:
        return self._ledger.chain_sync_state

    @property
    def transactions_sync_state(self) -> SyncState:
        return self._history_engine.sync_state

    @property
    def transactions_sync_state_stream(self) -> LatestValueStream:
        return self._history_engine.sync_state_stream

    @property
    def transactions_stream(self) -> LatestValueStream:
        return self._history_engine.transactions_stream

    def start(self):
        with self._lock:
            if self._running:
                return
            self._running = True
            self._logger.info(f'start syncing token {self._token.address} for {self._ledger.receive_address}')
            self._subscriptions = [
                self._balance_engine.events.subscribe(self._on_balance_event),
                self._history_engine.events.subscribe(self._on_history_event),
                # delivers the current chain state right away
                self._ledger.chain_sync_state_stream.subscribe(self.on_chain_sync_state_changed),
            ]
            self._history_engine.sync()

    def stop(self):
        with self._lock:
            if not self._running:
                return
            self._running = False
            for subscription in self._subscriptions:
                subscription.dispose()
            self._subscriptions = []
            self._balance_engine.cancel()
            self._history_engine.cancel()
            self._logger.info(f'stop syncing token {self._token.address}')

    def refresh(self):
        with self._lock:
            if not self._running:
                return
            self._history_engine.sync()
            self._balance_engine.sync()

    def on_chain_sync_state_changed(self, state: SyncState):
        with self._lock:
            if not self._running:
                return
            if isinstance(state, NotSynced):
                self._set_sync_state(NotSynced(state.error))
            elif isinstance(state, Syncing):
                self._set_sync_state(Syncing())
            elif isinstance(state, Synced):
                self._set_sync_state(Syncing())
                self._balance_engine.sync()

    def on_balance_synced(self, balance: int):
        with self._lock:
            if not self._running:
                return
            self.balance_stream.publish(balance)
            self._set_sync_state(Synced())

    def on_balance_sync_failed(self, error: BaseException):
        with self._lock:
            if not self._running:
                return
            self._set_sync_state(NotSynced(error))

    def _set_sync_state(self, state: SyncState):
        if isinstance(state, Synced) and isinstance(self.sync_state, NotSynced):
            # never jump from NotSynced straight to Synced
            self.sync_state_stream.publish(Syncing())
        self.sync_state_stream.publish(state)

    def _on_balance_event(self, event):
        if isinstance(event, BalanceSynced):
            self.on_balance_synced(event.balance)
        elif isinstance(event, BalanceSyncFailed):
            self.on_balance_sync_failed(event.error)

    def _on_history_event(self, event):
        if not isinstance(event, HistorySynced):
            return
        with self._lock:
            if not self._running:
                return
            self._logger.info(f'history synced, {len(event.transactions)} new transactions, refresh balance')
            self._balance_engine.sync()

    def sync_balance(self) -> Future:
        """One-shot balance fetch, usable without `start()`."""
        return self._balance_engine.sync()

    def sync_transactions(self) -> Future:
        """One-shot history cycle, usable without `start()`."""
        return self._history_engine.sync()

    def get_allowance_async(self, spender, block_reference=LATEST) -> Future:
        return self._allowance_coordinator.allowance(spender, block_reference)

    def get_allowance(self, spender, block_reference=LATEST, timeout: float = None) -> int:
        return self.get_allowance_async(spender, block_reference).result(timeout)

    def build_approve_transaction_data(self, spender, amount: int) -> TransactionData:
        return self._allowance_coordinator.approve_transaction_data(spender, amount)

    def build_transfer_transaction_data(self, to, value: int) -> TransactionData:
        return self._token.transfer_transaction_data(Address(to), value)

    def get_transactions(self, from_key: Optional[TransactionKey] = None, limit: Optional[int] = None) -> List[Transaction]:
        return self._history_engine.get_transactions(from_key, limit)

    def get_transactions_async(self, from_key: Optional[TransactionKey] = None, limit: Optional[int] = None) -> Future:
        return self._executor.submit(self._history_engine.get_transactions, from_key, limit)

    def get_account_transactions_async(self, start_block: int = 0) -> Future:
        """Plain transactions of the tracked address from the indexer, not stored."""
        return self._executor.submit(self._history_engine.get_account_transactions, start_block)

    def get_pending_transactions(self) -> List[Transaction]:
        return self._history_engine.get_pending_transactions()

    def add_pending_transaction(self, transaction: Transaction) -> bool:
        return self._history_engine.add_pending_transaction(transaction)

    def drop_pending_transaction(self, transaction_hash: str) -> bool:
        return self._history_engine.drop_pending_transaction(transaction_hash)


def create_coordinator(token_address: str = None, wallet_address: str = None, ledger=None,
                       indexer=None, db_engine=None, executor: Executor = None) -> SyncCoordinator:
    """Wire a SyncCoordinator from the configuration.

    Every collaborator can be passed in, the missing ones are built from
    `config`.
    """
    token_address = Address(token_address or config.TOKEN_ADDRESS)
    wallet_address = Address(wallet_address or config.WALLET_ADDRESS)
    if ledger is None:
        ledger = Web3Ledger.from_url(config.ETH_RPC_URL, wallet_address)
    if indexer is None:
        indexer = EtherscanService()
    if db_engine is None:
        db_engine = create_db_engine()
    if executor is None:
        executor = ThreadPoolExecutor(max_workers=config.SYNC_WORKERS, thread_name_prefix='erc20sync')

    storage = Erc20Storage(db_engine, token_address, wallet_address)
    token = ERC20Token(ledger, token_address)
    balance_engine = BalanceSyncEngine(token, wallet_address, storage, executor)
    history_engine = HistorySyncEngine(indexer, storage, wallet_address, token_address, executor)
    allowance_coordinator = AllowanceCoordinator(token, wallet_address, executor)
    return SyncCoordinator(ledger, token, balance_engine, history_engine, allowance_coordinator, executor)
