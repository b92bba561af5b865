from .etherscan import EtherscanService
from .ledger import Web3Ledger
