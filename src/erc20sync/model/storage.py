import logging
import threading
from typing import Iterable, List, Optional

from sqlalchemy import and_, desc, func, or_
from sqlalchemy.orm import sessionmaker

from ..syncer.types import Transaction, TransactionKey
from .orm import PENDING_LOG_INDEX, SyncCursor, TokenBalance, TokenTransaction


class Erc20Storage:
    """Transactions, balance and sync cursor of one (token, holder) pair.

    Every method opens its own session and commits before returning, the
    callers never see a session.
    """

    def __init__(self, db_engine, token_address, holder_address):
        self._token = str(token_address).lower()
        self._holder = str(holder_address).lower()
        self._Session = sessionmaker(bind=db_engine)
        # one sqlite connection must not be used by two threads at once
        self._lock = threading.Lock()
        self._logger = logging.getLogger()

    def _transactions(self, db_session):
        return db_session.query(TokenTransaction)\
            .filter(TokenTransaction.token == self._token)\
            .filter(TokenTransaction.holder == self._holder)

    def _to_transaction(self, row: TokenTransaction) -> Transaction:
        pending = row.log_index == PENDING_LOG_INDEX
        return Transaction(
            hash=row.transaction_hash,
            from_address=row.from_address,
            to_address=row.to_address,
            value=int(row.value),
            timestamp=row.timestamp,
            block_number=None if pending else row.block_number,
            transaction_index=None if pending else row.transaction_index,
            log_index=None if pending else row.log_index,
            contract_address=self._token,
        )

    def _to_row(self, transaction: Transaction) -> TokenTransaction:
        row = TokenTransaction()
        row.token = self._token
        row.holder = self._holder
        row.transaction_hash = transaction.hash
        row.log_index = PENDING_LOG_INDEX if transaction.is_pending else transaction.log_index
        row.block_number = transaction.block_number
        row.transaction_index = transaction.transaction_index
        row.timestamp = transaction.timestamp
        row.from_address = transaction.from_address
        row.to_address = transaction.to_address
        row.value = str(transaction.value)
        return row

    def put_transactions(self, transactions: Iterable[Transaction]) -> List[Transaction]:
        """Insert the transactions not stored yet.

        A confirmed transaction replaces the pending entry with the same hash.

        Returns:
            List[Transaction]: the transactions that were actually inserted.
        """
        transactions = list(transactions)
        if not transactions:
            return []
        with self._lock:
            db_session = self._Session()
            try:
                hashes = {tx.hash for tx in transactions}
                existing = set(self._transactions(db_session)
                               .filter(TokenTransaction.transaction_hash.in_(hashes))
                               .with_entities(TokenTransaction.transaction_hash, TokenTransaction.log_index)
                               .all())
                existing = {(tx_hash, log_index) for tx_hash, log_index in existing}
                inserted = []
                confirmed_hashes = set()
                for transaction in transactions:
                    row = self._to_row(transaction)
                    identity = (row.transaction_hash, row.log_index)
                    if identity in existing:
                        continue
                    if transaction.is_pending and any(h == transaction.hash for h, _ in existing):
                        # already mined
                        continue
                    existing.add(identity)
                    db_session.add(row)
                    inserted.append(transaction)
                    if not transaction.is_pending:
                        confirmed_hashes.add(transaction.hash)
                if confirmed_hashes:
                    self._transactions(db_session)\
                        .filter(TokenTransaction.transaction_hash.in_(confirmed_hashes))\
                        .filter(TokenTransaction.log_index == PENDING_LOG_INDEX)\
                        .delete(synchronize_session=False)
                db_session.commit()
                return inserted
            finally:
                db_session.rollback()
                db_session.close()

    def query_transactions(self, from_key: Optional[TransactionKey] = None, limit: Optional[int] = None) -> List[Transaction]:
        """Confirmed transactions strictly before `from_key`, newest first."""
        with self._lock:
            db_session = self._Session()
            try:
                query = self._transactions(db_session)\
                    .filter(TokenTransaction.log_index != PENDING_LOG_INDEX)
                if from_key is not None:
                    query = query.filter(or_(
                        TokenTransaction.block_number < from_key.block_number,
                        and_(TokenTransaction.block_number == from_key.block_number,
                             TokenTransaction.transaction_index < from_key.transaction_index),
                        and_(TokenTransaction.block_number == from_key.block_number,
                             TokenTransaction.transaction_index == from_key.transaction_index,
                             TokenTransaction.log_index < from_key.log_index),
                    ))
                query = query.order_by(desc(TokenTransaction.block_number),
                                       desc(TokenTransaction.transaction_index),
                                       desc(TokenTransaction.log_index))
                if limit is not None:
                    query = query.limit(limit)
                return [self._to_transaction(row) for row in query.all()]
            finally:
                db_session.close()

    def get_pending_transactions(self) -> List[Transaction]:
        with self._lock:
            db_session = self._Session()
            try:
                rows = self._transactions(db_session)\
                    .filter(TokenTransaction.log_index == PENDING_LOG_INDEX)\
                    .order_by(desc(TokenTransaction.timestamp))\
                    .all()
                return [self._to_transaction(row) for row in rows]
            finally:
                db_session.close()

    def delete_pending_transaction(self, transaction_hash: str) -> bool:
        with self._lock:
            db_session = self._Session()
            try:
                deleted = self._transactions(db_session)\
                    .filter(TokenTransaction.transaction_hash == transaction_hash)\
                    .filter(TokenTransaction.log_index == PENDING_LOG_INDEX)\
                    .delete(synchronize_session=False)
                db_session.commit()
                return deleted > 0
            finally:
                db_session.rollback()
                db_session.close()

    def get_last_block_number(self) -> int:
        """Highest confirmed block in the store, 0 if there is none."""
        with self._lock:
            db_session = self._Session()
            try:
                result = self._transactions(db_session)\
                    .filter(TokenTransaction.log_index != PENDING_LOG_INDEX)\
                    .with_entities(func.max(TokenTransaction.block_number))\
                    .first()
                return result[0] or 0
            finally:
                db_session.close()

    def get_synced_block_number(self) -> int:
        with self._lock:
            db_session = self._Session()
            try:
                cursor = db_session.get(SyncCursor, (self._token, self._holder))
                if cursor is None:
                    return 0
                return cursor.synced_block_number
            finally:
                db_session.close()

    def set_synced_block_number(self, block_number: int):
        with self._lock:
            db_session = self._Session()
            try:
                cursor = db_session.get(SyncCursor, (self._token, self._holder))
                if cursor is None:
                    cursor = SyncCursor(token=self._token, holder=self._holder)
                cursor.synced_block_number = block_number
                db_session.add(cursor)
                db_session.commit()
            finally:
                db_session.rollback()
                db_session.close()

    def get_balance(self) -> Optional[int]:
        with self._lock:
            db_session = self._Session()
            try:
                item = db_session.get(TokenBalance, (self._token, self._holder))
                if item is None:
                    return None
                return int(item.balance)
            finally:
                db_session.close()

    def put_balance(self, balance: int):
        with self._lock:
            db_session = self._Session()
            try:
                item = db_session.get(TokenBalance, (self._token, self._holder))
                if item is None:
                    item = TokenBalance(token=self._token, holder=self._holder)
                item.balance = str(balance)
                db_session.add(item)
                db_session.commit()
            finally:
                db_session.rollback()
                db_session.close()
