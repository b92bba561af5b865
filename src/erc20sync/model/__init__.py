from .orm import Base, SyncCursor, TokenBalance, TokenTransaction
from .db import create_db_engine
from .storage import Erc20Storage
