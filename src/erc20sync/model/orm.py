from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# log index of a transaction that has not been mined yet
PENDING_LOG_INDEX = -1


class TokenTransaction(Base):
    __tablename__ = "token_transactions"

    token = Column(String, primary_key=True)
    holder = Column(String, primary_key=True)
    transaction_hash = Column(String, primary_key=True)
    log_index = Column(Integer, primary_key=True)
    block_number = Column(Integer, nullable=True, index=True)
    transaction_index = Column(Integer, nullable=True)
    timestamp = Column(Integer)
    from_address = Column(String)
    to_address = Column(String)
    # uint256 kept as a decimal string, sqlite has no 78 digit numeric
    value = Column(String)


class TokenBalance(Base):
    __tablename__ = "token_balances"

    token = Column(String, primary_key=True)
    holder = Column(String, primary_key=True)
    balance = Column(String)


class SyncCursor(Base):
    __tablename__ = "sync_cursors"

    token = Column(String, primary_key=True)
    holder = Column(String, primary_key=True)
    synced_block_number = Column(Integer)
