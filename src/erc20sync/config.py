import os

# eth node rpc request
ETH_RPC_URL = os.environ.get('ETH_RPC_URL', 'http://localhost:8545')
ETH_RPC_TIMEOUT = int(os.environ.get('ETH_RPC_TIMEOUT', 10))

# etherscan compatible indexer
ETHERSCAN_URL = os.environ.get('ETHERSCAN_URL', 'https://api.etherscan.io')
ETHERSCAN_API_KEY = os.environ.get('ETHERSCAN_API_KEY', '')
ETHERSCAN_TIMEOUT = int(os.environ.get('ETHERSCAN_TIMEOUT', 30))
# the indexer never returns more than this many records for one request
INDEXER_PAGE_SIZE = int(os.environ.get('INDEXER_PAGE_SIZE', 10000))

# tracked token and holder
TOKEN_ADDRESS = os.environ.get('TOKEN_ADDRESS', '')
WALLET_ADDRESS = os.environ.get('WALLET_ADDRESS', '')

# db
DB_URL = os.environ.get('DB_URL', 'sqlite:///erc20sync.db')
DB_ECHO = os.environ.get('DB_ECHO', '').lower() in ('1', 'true', 'yes')

# sync
CHAIN_SYNC_CHECK_INTERVAL = float(os.environ.get('CHAIN_SYNC_CHECK_INTERVAL', 3))  # 3 sec
REFRESH_INTERVAL = float(os.environ.get('REFRESH_INTERVAL', 30))
SYNC_WORKERS = int(os.environ.get('SYNC_WORKERS', 4))

# log
LOGPATH = os.environ.get('LOGPATH', './log/erc20sync.log')

LOG_CONFIG = {
    "version": 1,
    "disable_existing_loggers": True,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)-7s - %(message)s - [%(filename)s:%(lineno)d:%(funcName)s]",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "simple",
            "stream": "ext://sys.stdout",
        },
        "file_handler": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "simple",
            "filename": "",
            "maxBytes": 104857600, # 100MB
            "backupCount": 7,
            "encoding": "utf8"
        },
    },
    "root": {
        "level": "DEBUG",
        "handlers": ["console", "file_handler"],
    }
}
