import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import List, Optional

from ..exceptions import RemoteStatusError, SyncCancelledError
from ..lib.address import Address
from ..lib.stream import EventChannel, LatestValueStream
from .types import NotSynced, Synced, Syncing, Transaction, TransactionKey


@dataclass(frozen=True)
class HistorySynced:
    """A history cycle finished; `transactions` are the events it stored for the first time."""
    transactions: List[Transaction]


class HistorySyncEngine:
    """Pull the transfer history of the tracked address from the indexer.

    Pages are requested in ascending block order starting right after the
    sync cursor. Every page is stored as soon as it arrives, duplicates are
    skipped by (hash, log index), so an aborted cycle can simply be run again.
    The cursor only moves when a whole cycle succeeds; every successful cycle
    publishes the full transaction list and a HistorySynced event.
    """

    def __init__(self, indexer, storage, address: Address, contract_address: Address, executor: Executor):
        self._indexer = indexer
        self._storage = storage
        self._address = address
        self._contract_address = contract_address
        self._executor = executor
        self.sync_state_stream = LatestValueStream(NotSynced())
        self.transactions_stream = LatestValueStream()
        self.events = EventChannel()
        self._lock = threading.RLock()
        self._future = None
        self._epoch = 0
        self._logger = logging.getLogger()

    @property
    def sync_state(self):
        return self.sync_state_stream.value

    def sync(self) -> Future:
        """Start a history cycle, or join the one already running."""
        with self._lock:
            if self._future is not None and not self._future.done():
                self._logger.debug('history sync already in flight')
                return self._future
            self._future = self._executor.submit(self._sync, self._epoch)
            return self._future

    def cancel(self):
        with self._lock:
            self._epoch += 1
            if self._future is not None:
                self._future.cancel()
            self._future = None

    def get_transactions(self, from_key: Optional[TransactionKey] = None, limit: Optional[int] = None) -> List[Transaction]:
        return self._storage.query_transactions(from_key, limit)

    def get_pending_transactions(self) -> List[Transaction]:
        return self._storage.get_pending_transactions()

    def all_transactions(self) -> List[Transaction]:
        """Pending transactions first, then the confirmed ones newest first."""
        return self._storage.get_pending_transactions() + self._storage.query_transactions()

    def add_pending_transaction(self, transaction: Transaction) -> bool:
        if not transaction.is_pending:
            raise ValueError(f'transaction {transaction.hash} is already mined')
        inserted = self._storage.put_transactions([transaction])
        if inserted:
            self.transactions_stream.publish(self.all_transactions())
        return bool(inserted)

    def drop_pending_transaction(self, transaction_hash: str) -> bool:
        dropped = self._storage.delete_pending_transaction(transaction_hash)
        if dropped:
            self._logger.info(f'pending transaction {transaction_hash} dropped')
            self.transactions_stream.publish(self.all_transactions())
        return dropped

    def get_account_transactions(self, start_block: int = 0) -> List[Transaction]:
        """Plain transactions sent or received by the tracked address, newest first.

        Read straight from the indexer and not stored, they include calls that
        emitted no transfer log of the token.
        """
        return self._indexer.get_transaction_list(self._address.hex, start_block, sort='desc')

    def _check_epoch(self, epoch):
        with self._lock:
            if epoch != self._epoch:
                raise SyncCancelledError('history sync cancelled')

    def _publish_state(self, epoch, state):
        self._check_epoch(epoch)
        self.sync_state_stream.publish(state)

    def _sync(self, epoch) -> List[Transaction]:
        self._publish_state(epoch, Syncing())
        try:
            inserted = self._fetch_pages(epoch)
            with self._lock:
                self._check_epoch(epoch)
                self._storage.set_synced_block_number(self._storage.get_last_block_number())
        except SyncCancelledError:
            self._logger.warning('history sync cancelled, result discarded')
            raise
        except Exception as e:
            self._logger.warning(f'history sync error, token:{self._contract_address}, err:{e}')
            self._publish_state(epoch, NotSynced(e))
            raise

        self._publish_state(epoch, Synced())
        self.transactions_stream.publish(self.all_transactions())
        self.events.publish(HistorySynced(inserted))
        return inserted

    def _fetch_pages(self, epoch) -> List[Transaction]:
        start_block = self._storage.get_synced_block_number() + 1
        page_size = self._indexer.page_size
        inserted = []
        while True:
            self._check_epoch(epoch)
            page = self._indexer.get_token_transactions(
                self._address.hex, self._contract_address.hex, start_block, sort='asc')
            with self._lock:
                self._check_epoch(epoch)
                new_transactions = self._storage.put_transactions(page)
            inserted.extend(new_transactions)
            self._logger.info(f'sync history page, start_block:{start_block}, events:{len(page)}, new:{len(new_transactions)}')
            if len(page) < page_size:
                return inserted

            # the last block of a full page may continue on the next page
            next_block = max(tx.block_number for tx in page)
            if next_block <= start_block:
                # the indexer cannot page inside one block, stop before leaving a gap
                raise RemoteStatusError(f'block {start_block} holds more than {page_size} events')
            start_block = next_block
