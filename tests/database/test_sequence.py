"""Tests for the named sequence counter."""
from concurrent.futures import ThreadPoolExecutor


def test_first_value_is_one(temp_db):
    assert temp_db.counters.current("orderId") is None
    assert temp_db.next_sequence("orderId") == 1
    assert temp_db.next_sequence("orderId") == 2
    assert temp_db.counters.current("orderId") == 2


def test_sequences_are_independent(temp_db):
    temp_db.next_sequence("a")
    temp_db.next_sequence("a")
    assert temp_db.next_sequence("b") == 1
    assert temp_db.next_sequence("a") == 3


def test_concurrent_callers_get_unique_values(temp_db):
    temp_db.next_sequence("orderId")

    def take(_):
        return [temp_db.next_sequence("orderId") for _ in range(25)]

    with ThreadPoolExecutor(max_workers=4) as pool:
        values = [v for batch in pool.map(take, range(4)) for v in batch]

    assert len(values) == 100
    assert len(set(values)) == 100
    assert sorted(values) == list(range(2, 102))
