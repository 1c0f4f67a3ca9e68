import pytest

from campus_support.cache import CacheState, should_refetch
from campus_support.collection import Collection, Insert, Remove, Replace, ReplaceAll

from conftest import make_ticket


# ─── should_refetch ───────────────────────────────────────────────────────────

def test_empty_state_needs_fetch():
    assert should_refetch(CacheState(), now=1000.0, ttl=300) is True


def test_fresh_state_does_not_refetch():
    state = CacheState().loaded(["a"], now=1000.0)
    assert should_refetch(state, now=1299.0, ttl=300) is False


def test_expired_state_refetches():
    state = CacheState().loaded(["a"], now=1000.0)
    assert should_refetch(state, now=1300.0, ttl=300) is True


def test_loading_state_never_refetches():
    state = CacheState().loading()
    assert should_refetch(state, now=1e9, ttl=0) is False


def test_invalidated_state_refetches_but_keeps_data():
    state = CacheState().loaded(["a"], now=1000.0).invalidated()
    assert state.data == ["a"]
    assert should_refetch(state, now=1001.0, ttl=300) is True


def test_failure_keeps_stale_data_and_error():
    state = CacheState().loaded(["a"], now=1.0).loading().failed("boom")
    assert state.data == ["a"]
    assert state.error == "boom"
    assert state.is_loading is False
    assert state.last_fetched_at == 1.0


def test_transitions_do_not_mutate():
    original = CacheState()
    original.loading()
    assert original.is_loading is False


# ─── Collection ───────────────────────────────────────────────────────────────

@pytest.fixture
def snapshot():
    return Collection.of([make_ticket(1), make_ticket(2), make_ticket(3)])


def test_index_lookup(snapshot):
    assert snapshot.get(2).ticket_number == "T-00002"
    assert snapshot.get(99) is None
    assert 3 in snapshot and 4 not in snapshot


def test_insert_goes_to_front_and_returns_new_snapshot(snapshot):
    updated = snapshot.apply(Insert(make_ticket(4)))
    assert updated.ids() == [4, 1, 2, 3]
    assert snapshot.ids() == [1, 2, 3]


def test_insert_existing_id_moves_it(snapshot):
    updated = snapshot.apply(Insert(make_ticket(3, subject="moved")))
    assert updated.ids() == [3, 1, 2]
    assert updated.get(3).subject == "moved"


def test_insert_at_back(snapshot):
    assert snapshot.apply(Insert(make_ticket(9), at_front=False)).ids() == [1, 2, 3, 9]


def test_replace_keeps_position(snapshot):
    updated = snapshot.apply(Replace(make_ticket(2, subject="edited")))
    assert updated.ids() == [1, 2, 3]
    assert updated.get(2).subject == "edited"
    assert snapshot.get(2).subject == "Ticket 2"


def test_replace_unknown_is_noop(snapshot):
    assert snapshot.apply(Replace(make_ticket(42))) is snapshot


def test_remove(snapshot):
    updated = snapshot.apply(Remove(2))
    assert updated.ids() == [1, 3]
    assert updated.get(3).id == 3
    assert len(snapshot) == 3


def test_replace_all_dedupes_by_id():
    coll = Collection().apply(ReplaceAll((make_ticket(1), make_ticket(2), make_ticket(1, subject="late"))))
    assert coll.ids() == [2, 1]
    assert coll.get(1).subject == "late"


def test_unknown_command_raises(snapshot):
    with pytest.raises(TypeError):
        snapshot.apply("drop everything")
