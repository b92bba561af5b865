from dataclasses import dataclass
from typing import Optional, Tuple, Union

LATEST = 'latest'

BlockReference = Union[str, int]


def normalize_block_reference(block_reference: BlockReference) -> BlockReference:
    """Return `LATEST` or a non-negative block height, reject anything else."""
    if block_reference == LATEST:
        return LATEST
    if isinstance(block_reference, bool) or not isinstance(block_reference, int) or block_reference < 0:
        raise ValueError(f'invalid block reference: {block_reference!r}')
    return block_reference


class SyncState:
    """One of NotSynced(error), Syncing, Synced."""
    name = ''

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class NotSynced(SyncState):
    error: Optional[BaseException] = None
    name = 'not_synced'

    def __str__(self):
        return f'{self.name}({self.error})'


@dataclass(frozen=True)
class Syncing(SyncState):
    name = 'syncing'


@dataclass(frozen=True)
class Synced(SyncState):
    name = 'synced'


@dataclass(frozen=True, order=True)
class TransactionKey:
    """Position of a transfer event on chain, used as a pagination cursor."""
    block_number: int
    transaction_index: int
    log_index: int


@dataclass(frozen=True)
class Transaction:
    """A token transfer event.

    A single on-chain transaction may emit several transfer logs, so the
    identity is (hash, log_index). Pending transactions have neither a block
    number nor a log index yet.
    """
    hash: str
    from_address: str
    to_address: str
    value: int
    timestamp: int
    block_number: Optional[int] = None
    transaction_index: Optional[int] = None
    log_index: Optional[int] = None
    contract_address: str = ''

    @property
    def identity(self) -> Tuple[str, Optional[int]]:
        return (self.hash, self.log_index)

    @property
    def is_pending(self) -> bool:
        return self.block_number is None

    @property
    def key(self) -> Optional[TransactionKey]:
        if self.is_pending:
            return None
        return TransactionKey(self.block_number, self.transaction_index or 0, self.log_index or 0)
