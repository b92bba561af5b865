from dataclasses import dataclass

from eth_abi import encode
from eth_utils import big_endian_to_int, function_signature_to_4byte_selector
from hexbytes import HexBytes

from ..exceptions import DecodeError
from ..lib.address import Address
from ..syncer.types import LATEST

UINT256_MAX = 2**256 - 1

BALANCE_OF = function_signature_to_4byte_selector('balanceOf(address)')
ALLOWANCE = function_signature_to_4byte_selector('allowance(address,address)')
APPROVE = function_signature_to_4byte_selector('approve(address,uint256)')
TRANSFER = function_signature_to_4byte_selector('transfer(address,uint256)')


@dataclass(frozen=True)
class TransactionData:
    """What a wallet needs to send a contract call: target, ether value, call data."""
    to: Address
    value: int
    input: HexBytes


def _check_amount(amount: int):
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f'amount must be an integer, got {amount!r}')
    if amount < 0 or amount > UINT256_MAX:
        raise ValueError(f'amount out of uint256 range: {amount}')


def encode_balance_of(owner: Address) -> HexBytes:
    return HexBytes(BALANCE_OF + encode(['address'], [owner.address]))


def encode_allowance(owner: Address, spender: Address) -> HexBytes:
    return HexBytes(ALLOWANCE + encode(['address', 'address'], [owner.address, spender.address]))


def encode_approve(spender: Address, amount: int) -> HexBytes:
    _check_amount(amount)
    return HexBytes(APPROVE + encode(['address', 'uint256'], [spender.address, amount]))


def encode_transfer(to: Address, value: int) -> HexBytes:
    _check_amount(value)
    return HexBytes(TRANSFER + encode(['address', 'uint256'], [to.address, value]))


def decode_uint256(raw) -> int:
    """Decode the single uint256 word returned by balanceOf/allowance."""
    data = HexBytes(raw) if raw is not None else HexBytes(b'')
    if len(data) != 32:
        raise DecodeError(f'expected a 32 byte word, got {len(data)} bytes: {data.hex()}')
    return big_endian_to_int(data)


class ERC20Token:
    """Read-only view of an ERC20 contract through a RemoteLedgerClient."""

    def __init__(self, ledger, address: Address):
        assert(isinstance(address, Address))

        self.ledger = ledger
        self.address = address

    def balance_of(self, owner: Address, block_reference=LATEST) -> int:
        raw = self.ledger.call_contract(self.address, encode_balance_of(owner), block_reference)
        return decode_uint256(raw)

    def allowance(self, owner: Address, spender: Address, block_reference=LATEST) -> int:
        raw = self.ledger.call_contract(self.address, encode_allowance(owner, spender), block_reference)
        return decode_uint256(raw)

    def approve_transaction_data(self, spender: Address, amount: int) -> TransactionData:
        return TransactionData(to=self.address, value=0, input=encode_approve(spender, amount))

    def transfer_transaction_data(self, to: Address, value: int) -> TransactionData:
        return TransactionData(to=self.address, value=0, input=encode_transfer(to, value))
