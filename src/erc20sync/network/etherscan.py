import logging
from typing import List

import requests

from .. import config
from ..exceptions import DecodeError, NetworkError, RemoteStatusError
from ..syncer.types import Transaction

MAX_END_BLOCK = 99_999_999

# etherscan reports an empty result with status "0"
NO_TRANSACTIONS_FOUND = 'No transactions found'


def parse_transfer(record: dict) -> Transaction:
    """Build a Transaction from one `tokentx`/`txlist` record."""
    try:
        log_index = record.get('logIndex')
        return Transaction(
            hash=record['hash'].lower(),
            from_address=record['from'].lower(),
            to_address=record['to'].lower(),
            value=int(record['value']),
            timestamp=int(record['timeStamp']),
            block_number=int(record['blockNumber']),
            transaction_index=int(record['transactionIndex']),
            # txlist records are plain transactions without a log
            log_index=int(log_index) if log_index not in (None, '') else 0,
            contract_address=(record.get('contractAddress') or '').lower(),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DecodeError(f'malformed indexer record {record!r}: {e}')


class EtherscanService:
    """Client of an Etherscan compatible `/api` endpoint.

    The indexer caps every answer at `page_size` records, callers page by
    moving `startblock` forward.
    """

    def __init__(self, base_url: str = None, api_key: str = None, page_size: int = None,
                 timeout: float = None, session: requests.Session = None):
        self._base_url = (base_url or config.ETHERSCAN_URL).rstrip('/')
        self._api_key = config.ETHERSCAN_API_KEY if api_key is None else api_key
        self.page_size = page_size or config.INDEXER_PAGE_SIZE
        self._timeout = timeout or config.ETHERSCAN_TIMEOUT
        self._session = session or requests.Session()
        self._logger = logging.getLogger()

    def get_token_transactions(self, address: str, contract_address: str, start_block: int, sort: str = 'asc') -> List[Transaction]:
        params = {
            'module': 'account',
            'action': 'tokentx',
            'address': address,
            'contractaddress': contract_address,
            'startblock': start_block,
            'endblock': MAX_END_BLOCK,
            'sort': sort,
            'apikey': self._api_key,
        }
        return [parse_transfer(r) for r in self._request(params)]

    def get_transaction_list(self, address: str, start_block: int, sort: str = 'desc') -> List[Transaction]:
        params = {
            'module': 'account',
            'action': 'txlist',
            'address': address,
            'startblock': start_block,
            'endblock': MAX_END_BLOCK,
            'sort': sort,
            'apikey': self._api_key,
        }
        return [parse_transfer(r) for r in self._request(params)]

    def _request(self, params: dict) -> list:
        url = f'{self._base_url}/api'
        try:
            resp = self._session.get(url, params=params, timeout=self._timeout)
        except requests.RequestException as e:
            raise NetworkError(f'indexer request failed: {e}')
        if resp.status_code // 100 != 2:
            raise RemoteStatusError(f'indexer http status {resp.status_code}', status=resp.status_code)
        try:
            body = resp.json()
        except ValueError as e:
            raise DecodeError(f'indexer returned invalid json: {e}')
        if not isinstance(body, dict):
            raise DecodeError(f'unexpected indexer response: {body!r}')

        status = str(body.get('status'))
        message = body.get('message') or ''
        result = body.get('result')
        if status != '1':
            if message.startswith(NO_TRANSACTIONS_FOUND) and result in ([], None):
                return []
            raise RemoteStatusError(f'indexer status {status}: {message} {result}', status=status)
        if not isinstance(result, list):
            raise DecodeError(f'indexer result is not a list: {result!r}')
        self._logger.debug(f'indexer {params["action"]} startblock:{params["startblock"]} records:{len(result)}')
        return result
