from functools import total_ordering

from eth_utils import is_address, to_canonical_address, to_checksum_address

from ..exceptions import InvalidAddressError


@total_ordering
class Address:
    """An Ethereum address.

    `address` holds the checksummed form, comparisons and hashing ignore case.
    """

    def __init__(self, address):
        if isinstance(address, Address):
            self.address = address.address
        elif isinstance(address, str) and is_address(address):
            self.address = to_checksum_address(address)
        else:
            raise InvalidAddressError(f'malformed address: {address!r}')

    @property
    def hex(self) -> str:
        return self.address.lower()

    def as_bytes(self) -> bytes:
        return to_canonical_address(self.address)

    def __str__(self):
        return self.address

    def __repr__(self):
        return "Address(" + self.address + ")"

    def __hash__(self):
        return hash(self.hex)

    def __eq__(self, other):
        if isinstance(other, Address):
            return self.hex == other.hex
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, Address):
            return self.hex < other.hex
        return NotImplemented
