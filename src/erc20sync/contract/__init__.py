from .erc20 import ERC20Token, TransactionData
