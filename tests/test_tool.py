import json
from unittest.mock import patch

from erc20sync import tool
from erc20sync.contract.erc20 import encode_approve
from erc20sync.syncer.types import NotSynced, Synced

from fakes import SPENDER, TOKEN, make_transfer


def run_main(monkeypatch, coordinator, *argv):
    monkeypatch.setattr('sys.argv', ['erc20sync', *argv])
    with patch('erc20sync.tool.setup_logging') as setup_logging, \
            patch('erc20sync.tool.create_coordinator', return_value=coordinator) as create:
        tool.main()
    return setup_logging, create


def test_encoder_handles_sync_types():
    transfer = make_transfer(10, value=2**255)

    data = json.loads(json.dumps({
        'tx': transfer,
        'state': Synced(),
        'failed': NotSynced(ValueError('boom')),
        'token': TOKEN,
        'input': b'\x01\xff',
    }, cls=tool.SyncEncoder))

    assert data['tx']['value'] == str(2**255)
    assert data['tx']['block_number'] == 10
    assert data['state'] == 'synced'
    assert data['failed'] == 'not_synced(boom)'
    assert data['token'] == TOKEN.address
    assert data['input'] == '0x01ff'


def test_block_reference_argument():
    assert tool._block_reference('latest') == 'latest'
    assert tool._block_reference(None) == 'latest'
    assert tool._block_reference('123') == 123


def test_approve_data_command(monkeypatch, capsys, coordinator):
    setup_logging, create = run_main(monkeypatch, coordinator, '--token', TOKEN.hex,
                                     'approve-data', SPENDER.hex, '1000')

    out = json.loads(capsys.readouterr().out)
    assert out['to'] == TOKEN.address
    assert out['value'] == 0
    assert out['input'] == '0x' + bytes(encode_approve(SPENDER, 1000)).hex()
    setup_logging.assert_called_once_with()
    create.assert_called_once_with(TOKEN.hex, None)


def test_balance_command(monkeypatch, capsys, ledger, coordinator):
    ledger.balances = [2**100]

    run_main(monkeypatch, coordinator, 'balance')

    out = json.loads(capsys.readouterr().out)
    assert out == {'token': TOKEN.address, 'balance': str(2**100)}


def test_transactions_command(monkeypatch, capsys, indexer, coordinator):
    indexer.events = [make_transfer(b) for b in range(1, 6)]

    run_main(monkeypatch, coordinator, 'transactions', '--limit', '2')

    out = json.loads(capsys.readouterr().out)
    assert [tx['block_number'] for tx in out] == [5, 4]


def test_allowance_command(monkeypatch, capsys, ledger, coordinator):
    ledger.allowances = [77]

    run_main(monkeypatch, coordinator, 'allowance', SPENDER.hex, '--block', '500')

    out = json.loads(capsys.readouterr().out)
    assert out['allowance'] == '77'
    assert ledger.allowance_calls()[0][2] == 500


def test_no_command_prints_help(monkeypatch, capsys, coordinator):
    setup_logging, create = run_main(monkeypatch, coordinator)

    assert 'usage' in capsys.readouterr().out
    create.assert_not_called()
    setup_logging.assert_not_called()


def test_txlist_command(monkeypatch, capsys, indexer, coordinator):
    indexer.transaction_list = [make_transfer(30), make_transfer(20)]

    run_main(monkeypatch, coordinator, 'txlist', '--start-block', '25')

    out = json.loads(capsys.readouterr().out)
    assert [tx['block_number'] for tx in out] == [30]
    assert indexer.transaction_list_requests[0][1] == 25
