import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass

from ..contract.erc20 import ERC20Token
from ..exceptions import SyncCancelledError
from ..lib.address import Address
from ..lib.stream import EventChannel
from .types import LATEST


@dataclass(frozen=True)
class BalanceSynced:
    balance: int


@dataclass(frozen=True)
class BalanceSyncFailed:
    error: BaseException


class BalanceSyncEngine:
    """Fetch the token balance of the tracked address, one flight at a time.

    Results go out on `events` as BalanceSynced / BalanceSyncFailed. Failures
    are not retried, the next trigger starts a new flight.
    """

    def __init__(self, token: ERC20Token, owner: Address, storage, executor: Executor):
        self._token = token
        self._owner = owner
        self._storage = storage
        self._executor = executor
        self.events = EventChannel()
        self._lock = threading.RLock()
        self._future = None
        self._epoch = 0
        self._logger = logging.getLogger()

    @property
    def balance(self):
        return self._storage.get_balance()

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._future is not None and not self._future.done()

    def sync(self) -> Future:
        """Start a balance fetch, or join the one already running."""
        with self._lock:
            if self._future is not None and not self._future.done():
                self._logger.debug('balance sync already in flight')
                return self._future
            self._future = self._executor.submit(self._sync, self._epoch)
            return self._future

    def cancel(self):
        """Drop the running flight; its result will be discarded."""
        with self._lock:
            self._epoch += 1
            if self._future is not None:
                self._future.cancel()
            self._future = None

    def _is_stale(self, epoch) -> bool:
        with self._lock:
            return epoch != self._epoch

    def _sync(self, epoch) -> int:
        try:
            balance = self._token.balance_of(self._owner, LATEST)
        except Exception as e:
            if self._is_stale(epoch):
                self._logger.warning(f'discard balance sync error after cancel: {e}')
                raise SyncCancelledError('balance sync cancelled')
            self._logger.warning(f'balance sync error, token:{self._token.address}, err:{e}')
            self.events.publish(BalanceSyncFailed(e))
            raise

        with self._lock:
            # cancel() waits for the write, a cancelled flight never writes
            if epoch != self._epoch:
                self._logger.warning(f'discard balance {balance} fetched before cancel')
                raise SyncCancelledError('balance sync cancelled')
            self._storage.put_balance(balance)
        self._logger.info(f'balance synced, token:{self._token.address}, holder:{self._owner}, balance:{balance}')
        self.events.publish(BalanceSynced(balance))
        return balance
