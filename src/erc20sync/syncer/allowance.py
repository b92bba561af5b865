import logging
import threading
from concurrent.futures import Executor, Future

from ..contract.erc20 import ERC20Token, TransactionData
from ..lib.address import Address
from .types import LATEST, normalize_block_reference


class AllowanceCoordinator:
    """Allowance lookups for the tracked owner.

    A value read at a fixed block height never changes and is cached forever.
    `latest` is always read again. Identical requests running at the same
    time share one remote call.
    """

    def __init__(self, token: ERC20Token, owner: Address, executor: Executor):
        self._token = token
        self._owner = owner
        self._executor = executor
        self._cache = {}
        self._in_flight = {}
        self._lock = threading.RLock()
        self._logger = logging.getLogger()

    def allowance(self, spender, block_reference=LATEST) -> Future:
        key = (Address(spender), normalize_block_reference(block_reference))
        with self._lock:
            if key in self._cache:
                self._logger.debug(f'allowance cache hit, spender:{key[0]}, block:{key[1]}')
                future = Future()
                future.set_result(self._cache[key])
                return future
            future = self._in_flight.get(key)
            if future is None:
                future = self._executor.submit(self._fetch, key)
                if not future.done():
                    self._in_flight[key] = future
            return future

    def approve_transaction_data(self, spender, amount: int) -> TransactionData:
        return self._token.approve_transaction_data(Address(spender), amount)

    def _fetch(self, key) -> int:
        spender, block_reference = key
        try:
            value = self._token.allowance(self._owner, spender, block_reference)
            if block_reference != LATEST:
                with self._lock:
                    self._cache[key] = value
            self._logger.info(f'allowance owner:{self._owner}, spender:{spender}, block:{block_reference}, value:{value}')
            return value
        except Exception as e:
            self._logger.warning(f'allowance lookup error, spender:{spender}, block:{block_reference}, err:{e}')
            raise
        finally:
            with self._lock:
                self._in_flight.pop(key, None)
