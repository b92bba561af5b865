from dataclasses import replace

import pytest

from erc20sync.exceptions import NetworkError, RemoteStatusError, SyncCancelledError
from erc20sync.syncer.history import HistorySynced
from erc20sync.syncer.types import NotSynced, Synced, Syncing

from fakes import WALLET, make_transfer


def identities(transactions):
    return [tx.identity for tx in transactions]


def test_single_short_page_completes_cycle(indexer, storage, history_engine):
    indexer.events = [make_transfer(b) for b in (10, 11, 12)]
    states = []
    events = []
    history_engine.sync_state_stream.subscribe(states.append)
    history_engine.events.subscribe(events.append)

    inserted = history_engine.sync().result(timeout=2)

    assert len(inserted) == 3
    assert indexer.requests == [1]
    assert states == [NotSynced(), Syncing(), Synced()]
    assert events == [HistorySynced(inserted)]
    assert storage.get_synced_block_number() == 12
    assert [tx.block_number for tx in history_engine.transactions_stream.value] == [12, 11, 10]


def test_full_pages_continue_from_last_block(indexer, storage, history_engine):
    indexer.page_size = 3
    # block 102 is split across the first and second page
    indexer.events = [make_transfer(100), make_transfer(101), make_transfer(102, 0, 0),
                      make_transfer(102, 0, 1), make_transfer(103), make_transfer(104),
                      make_transfer(105)]

    inserted = history_engine.sync().result(timeout=2)

    assert indexer.requests == [1, 102, 103, 105]
    assert len(inserted) == 7
    assert len(set(identities(storage.query_transactions()))) == 7
    assert storage.get_synced_block_number() == 105


def test_overlapping_pages_merge_without_duplicates(indexer, storage, history_engine):
    page_a = [make_transfer(b) for b in range(100, 111)]
    page_b = [make_transfer(b) for b in range(105, 121)]
    indexer.events = page_a
    history_engine.sync().result(timeout=2)

    indexer.events = page_b
    # force the second cycle to re-read the overlapping range
    storage.set_synced_block_number(99)
    inserted = history_engine.sync().result(timeout=2)

    stored = storage.query_transactions()
    assert len(identities(stored)) == len(set(identities(stored)))
    assert set(identities(stored)) == set(identities(page_a)) | set(identities(page_b))
    assert len(stored) == 21
    assert [tx.block_number for tx in inserted] == list(range(111, 121))


def test_next_cycle_starts_after_cursor(indexer, history_engine):
    indexer.events = [make_transfer(10)]
    history_engine.sync().result(timeout=2)
    indexer.events.append(make_transfer(20))

    inserted = history_engine.sync().result(timeout=2)

    assert indexer.requests == [1, 11]
    assert [tx.block_number for tx in inserted] == [20]


def test_cycle_without_new_events_publishes_stored_history(indexer, storage, history_engine):
    known = [make_transfer(10), make_transfer(11)]
    storage.put_transactions(known)
    storage.set_synced_block_number(11)
    indexer.events = list(known)
    events = []
    history_engine.events.subscribe(events.append)

    assert history_engine.sync().result(timeout=2) == []

    assert indexer.requests == [12]
    assert events == [HistorySynced([])]
    assert [tx.block_number for tx in history_engine.transactions_stream.value] == [11, 10]
    assert history_engine.sync_state == Synced()


def test_page_failure_keeps_cursor_and_resumes(indexer, storage, history_engine):
    indexer.page_size = 2
    indexer.events = [make_transfer(b) for b in (10, 11, 12, 13, 14)]
    error = NetworkError('indexer timeout')
    indexer.failures = {2: error}
    events = []
    history_engine.events.subscribe(events.append)

    with pytest.raises(NetworkError):
        history_engine.sync().result(timeout=2)

    assert history_engine.sync_state == NotSynced(error)
    assert storage.get_synced_block_number() == 0
    # the first page stays stored
    assert [tx.block_number for tx in storage.query_transactions()] == [11, 10]
    assert events == []

    inserted = history_engine.sync().result(timeout=2)

    assert indexer.requests[2] == 1
    assert [tx.block_number for tx in inserted] == [12, 13, 14]
    assert len(storage.query_transactions()) == 5
    assert storage.get_synced_block_number() == 14
    assert history_engine.sync_state == Synced()


def test_remote_status_error_is_not_an_empty_result(indexer, history_engine):
    indexer.failures = {1: RemoteStatusError('NOTOK', status='0')}

    with pytest.raises(RemoteStatusError):
        history_engine.sync().result(timeout=2)
    assert isinstance(history_engine.sync_state, NotSynced)


def test_full_page_inside_one_block_aborts_the_cycle(indexer, storage, history_engine):
    indexer.page_size = 2
    indexer.events = [make_transfer(50, 0, i) for i in range(3)] + [make_transfer(51)]
    events = []
    history_engine.events.subscribe(events.append)

    with pytest.raises(RemoteStatusError):
        history_engine.sync().result(timeout=2)

    assert indexer.requests == [1, 50]
    assert isinstance(history_engine.sync_state, NotSynced)
    assert isinstance(history_engine.sync_state.error, RemoteStatusError)
    assert storage.get_synced_block_number() == 0
    assert {tx.block_number for tx in storage.query_transactions()} == {50}
    assert events == []

    # the next cycle stops at the same block instead of moving past it
    with pytest.raises(RemoteStatusError):
        history_engine.sync().result(timeout=2)
    assert storage.get_synced_block_number() == 0


def test_get_transactions_limit_and_order(indexer, history_engine):
    indexer.events = [make_transfer(b, i, l) for b in range(100, 104) for i in range(2) for l in range(2)]
    history_engine.sync().result(timeout=2)

    page = history_engine.get_transactions(None, 10)

    assert len(page) == 10
    keys = [tx.key for tx in page]
    assert keys == sorted(keys, reverse=True)
    assert keys[0].block_number == 103

    rest = history_engine.get_transactions(page[-1].key, 10)
    assert len(rest) == 6
    assert rest[0].key < page[-1].key


def test_pending_transaction_lifecycle(indexer, history_engine):
    mined = make_transfer(300, 1, 2)
    pending = replace(mined, block_number=None, transaction_index=None, log_index=None)

    assert history_engine.add_pending_transaction(pending) is True
    assert history_engine.get_pending_transactions() == [pending]
    assert history_engine.transactions_stream.value == [pending]

    indexer.events = [mined]
    history_engine.sync().result(timeout=2)

    assert history_engine.get_pending_transactions() == []
    assert history_engine.transactions_stream.value == [mined]


def test_drop_pending_transaction(history_engine):
    pending = replace(make_transfer(1), block_number=None, transaction_index=None, log_index=None)
    history_engine.add_pending_transaction(pending)

    assert history_engine.drop_pending_transaction(pending.hash) is True
    assert history_engine.get_pending_transactions() == []
    assert history_engine.transactions_stream.value == []


def test_mined_transaction_cannot_be_added_as_pending(history_engine):
    with pytest.raises(ValueError):
        history_engine.add_pending_transaction(make_transfer(1))


def test_page_arriving_after_cancel_is_discarded(indexer, storage, history_engine):
    indexer.events = [make_transfer(10)]
    fetch = indexer.get_token_transactions

    def fetch_then_cancel(*args, **kwargs):
        page = fetch(*args, **kwargs)
        history_engine.cancel()
        return page

    indexer.get_token_transactions = fetch_then_cancel

    with pytest.raises(SyncCancelledError):
        history_engine.sync().result(timeout=2)
    assert storage.query_transactions() == []
    assert storage.get_synced_block_number() == 0
    assert history_engine.transactions_stream.value is None
    assert history_engine.sync_state == Syncing()


def test_account_transactions_come_from_the_indexer(indexer, storage, history_engine):
    indexer.transaction_list = [make_transfer(7), make_transfer(9)]

    transactions = history_engine.get_account_transactions(8)

    assert [tx.block_number for tx in transactions] == [9]
    assert indexer.transaction_list_requests == [(WALLET.hex, 8, 'desc')]
    assert storage.query_transactions() == []
