import logging
import threading

import requests
from web3 import HTTPProvider, Web3
from web3.exceptions import Web3Exception

from .. import config
from ..exceptions import NetworkError, RemoteStatusError
from ..lib.address import Address
from ..lib.stream import LatestValueStream
from ..syncer.types import LATEST, NotSynced, Synced, Syncing, normalize_block_reference


class Web3Ledger:
    """RemoteLedgerClient backed by an Ethereum JSON-RPC node.

    A monitor thread polls the node and publishes the chain level sync state:
    `Syncing` while the node catches up, `Synced` every time a new head is
    seen, `NotSynced(error)` while the node cannot be reached.
    """

    def __init__(self, web3: Web3, receive_address: Address, check_interval: float = None):
        assert(isinstance(receive_address, Address))

        self._web3 = web3
        self.receive_address = receive_address
        self._check_interval = config.CHAIN_SYNC_CHECK_INTERVAL if check_interval is None else check_interval
        self.chain_sync_state_stream = LatestValueStream(NotSynced())
        self._last_head = None
        self._stop_event = threading.Event()
        self._thread = None
        self._logger = logging.getLogger()

    @classmethod
    def from_url(cls, endpoint_uri: str, receive_address: Address, timeout: float = None, check_interval: float = None):
        web3 = Web3(HTTPProvider(endpoint_uri=endpoint_uri,
                                 request_kwargs={"timeout": timeout or config.ETH_RPC_TIMEOUT}))
        return cls(web3, receive_address, check_interval)

    @property
    def chain_sync_state(self):
        return self.chain_sync_state_stream.value

    def call_contract(self, address: Address, data: bytes, block_reference=LATEST) -> bytes:
        """Execute a read-only call against `address` pinned to `block_reference`."""
        block_identifier = normalize_block_reference(block_reference)
        try:
            return bytes(self._web3.eth.call({'to': address.address, 'data': data}, block_identifier))
        except requests.RequestException as e:
            raise NetworkError(f'eth_call to {address} failed: {e}')
        except (Web3Exception, ValueError) as e:
            raise RemoteStatusError(f'eth_call to {address} rejected: {e}')

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name='chain-sync-monitor', daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._check_interval + 1)
            self._thread = None

    def check_sync_state(self):
        """Poll the node once and publish the resulting chain sync state."""
        current = self.chain_sync_state_stream.value
        try:
            if self._web3.eth.syncing:
                state = Syncing()
            else:
                head = self._web3.eth.block_number
                if isinstance(current, Synced) and head == self._last_head:
                    return current
                self._last_head = head
                self._logger.info(f'chain synced, head block:{head}')
                state = Synced()
        except (requests.RequestException, Web3Exception, ValueError) as e:
            self._logger.warning(f'check chain sync state error: {e}')
            state = NotSynced(NetworkError(str(e)))
        if isinstance(state, Synced) or type(state) is not type(current):
            self.chain_sync_state_stream.publish(state)
        return state

    def _run(self):
        while not self._stop_event.is_set():
            self.check_sync_state()
            self._stop_event.wait(self._check_interval)
