from .types import LATEST, NotSynced, Synced, Syncing, SyncState, Transaction, TransactionKey
