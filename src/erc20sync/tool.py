import argparse
import json
import logging
import logging.config
import os
import time

from . import config
from .coordinator import create_coordinator
from .lib.address import Address
from .syncer.types import LATEST, SyncState, Transaction


class SyncEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, Transaction):
            return {
                'hash': obj.hash,
                'block_number': obj.block_number,
                'transaction_index': obj.transaction_index,
                'log_index': obj.log_index,
                'timestamp': obj.timestamp,
                'from': obj.from_address,
                'to': obj.to_address,
                # uint256 does not fit a json number
                'value': str(obj.value),
            }
        if isinstance(obj, (SyncState, Address)):
            return str(obj)
        if isinstance(obj, (bytes, bytearray)):
            return '0x' + bytes(obj).hex()
        return json.JSONEncoder.default(self, obj)


def _dump(data):
    print(json.dumps(data, cls=SyncEncoder, indent=4))


def setup_logging():
    logdir = os.path.dirname(config.LOGPATH)
    if logdir:
        os.makedirs(logdir, exist_ok=True)
    config.LOG_CONFIG["handlers"]["file_handler"]["filename"] = config.LOGPATH
    logging.config.dictConfig(config.LOG_CONFIG)


def _block_reference(value):
    return LATEST if value in (None, LATEST) else int(value)


def serv(coordinator, refresh_interval: float):
    """Run until interrupted, printing every local state change."""
    logger = logging.getLogger()
    states = coordinator.sync_state_stream.listen()
    coordinator.ledger.start()
    coordinator.start()
    next_refresh = time.monotonic() + refresh_interval
    try:
        while True:
            try:
                state = states.get(timeout=1)
                _dump({'sync_state': state, 'balance': coordinator.balance,
                       'transactions_sync_state': coordinator.transactions_sync_state})
            except TimeoutError:
                pass
            if time.monotonic() >= next_refresh:
                coordinator.refresh()
                next_refresh = time.monotonic() + refresh_interval
    except KeyboardInterrupt:
        logger.info('interrupted, stopping')
    finally:
        coordinator.stop()
        coordinator.ledger.stop()
        states.dispose()


def main():
    parser = argparse.ArgumentParser(
        description='ERC20 balance, history and allowance sync')
    parser.add_argument('--token', dest='token', metavar='TOKEN', default=None,
                        help='token contract address (default: $TOKEN_ADDRESS)')
    parser.add_argument('--wallet', dest='wallet', metavar='WALLET', default=None,
                        help='tracked address (default: $WALLET_ADDRESS)')

    subparsers = parser.add_subparsers(help="commands")

    watch_parser = subparsers.add_parser('watch', help="keep syncing and print state changes")
    watch_parser.add_argument('--interval', dest='interval', type=float, default=config.REFRESH_INTERVAL,
                              help='seconds between history refreshes')
    watch_parser.set_defaults(which='watch')

    balance_parser = subparsers.add_parser('balance', help="fetch the current balance")
    balance_parser.set_defaults(which='balance')

    transactions_parser = subparsers.add_parser('transactions', help="sync and list transfers")
    transactions_parser.add_argument('--limit', dest='limit', type=int, default=20)
    transactions_parser.set_defaults(which='transactions')

    txlist_parser = subparsers.add_parser('txlist', help="list plain transactions of the wallet from the indexer")
    txlist_parser.add_argument('--start-block', dest='start_block', type=int, default=0)
    txlist_parser.set_defaults(which='txlist')

    allowance_parser = subparsers.add_parser('allowance', help="query an allowance")
    allowance_parser.add_argument('spender', metavar='SPENDER', type=str)
    allowance_parser.add_argument('--block', dest='block', default=LATEST,
                                  help='block height or "latest"')
    allowance_parser.set_defaults(which='allowance')

    approve_parser = subparsers.add_parser('approve-data', help="build approve call data")
    approve_parser.add_argument('spender', metavar='SPENDER', type=str)
    approve_parser.add_argument('amount', metavar='AMOUNT', type=int)
    approve_parser.set_defaults(which='approve-data')

    transfer_parser = subparsers.add_parser('transfer-data', help="build transfer call data")
    transfer_parser.add_argument('to', metavar='TO', type=str)
    transfer_parser.add_argument('value', metavar='VALUE', type=int)
    transfer_parser.set_defaults(which='transfer-data')

    parser.set_defaults(which='nothing')

    args = parser.parse_args()
    if args.which == 'nothing':
        parser.print_help()
        return

    setup_logging()
    coordinator = create_coordinator(args.token, args.wallet)

    if args.which == 'watch':
        serv(coordinator, args.interval)
    elif args.which == 'balance':
        balance = coordinator.sync_balance().result()
        _dump({'token': coordinator.contract_address, 'balance': str(balance)})
    elif args.which == 'transactions':
        coordinator.sync_transactions().result()
        _dump(coordinator.get_transactions(limit=args.limit))
    elif args.which == 'txlist':
        _dump(coordinator.get_account_transactions_async(args.start_block).result())
    elif args.which == 'allowance':
        value = coordinator.get_allowance(args.spender, _block_reference(args.block))
        _dump({'spender': args.spender, 'block': args.block, 'allowance': str(value)})
    elif args.which == 'approve-data':
        data = coordinator.build_approve_transaction_data(args.spender, args.amount)
        _dump({'to': data.to, 'value': data.value, 'input': data.input})
    elif args.which == 'transfer-data':
        data = coordinator.build_transfer_transaction_data(args.to, args.value)
        _dump({'to': data.to, 'value': data.value, 'input': data.input})


if __name__ == "__main__":
    main()
