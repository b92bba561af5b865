from .coordinator import SyncCoordinator, create_coordinator
from .syncer.types import LATEST, NotSynced, Synced, Syncing, SyncState, Transaction, TransactionKey

__version__ = "0.1.0"
