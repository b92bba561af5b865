"""Errors raised by the ledger, the indexer and the sync engines."""


class Erc20SyncError(Exception):
    """Base exception for all erc20sync errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class NetworkError(Erc20SyncError):
    """Transport failure or timeout talking to the node or the indexer."""


class RemoteStatusError(Erc20SyncError):
    """The node or the indexer answered, but with a non-OK status.

    Attributes:
        status: the status reported by the remote side, if any.
    """

    def __init__(self, message: str, status=None):
        self.status = status
        super().__init__(message)


class DecodeError(Erc20SyncError):
    """A contract call result or an indexer payload could not be decoded."""


class SyncCancelledError(Erc20SyncError):
    """The operation was invalidated by `stop()`."""


class InvalidAddressError(Erc20SyncError, ValueError):
    """A value is not a 20 byte hex address."""
