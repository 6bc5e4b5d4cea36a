import sqlite3

import pytest
from veritas.services.batch_writer import write_in_batches


def test_writes_all_items_in_fixed_batches():
    batches = []

    outcome = write_in_batches(list(range(7)), batches.append, batch_size=3)

    assert outcome.success
    assert outcome.count == 7
    assert batches == [[0, 1, 2], [3, 4, 5], [6]]


def test_failing_batch_stops_the_run_and_reports_partial_count(caplog):
    calls = []

    def write(batch):
        calls.append(list(batch))
        if len(calls) == 2:
            raise sqlite3.OperationalError("database is locked")

    outcome = write_in_batches(list(range(10)), write, batch_size=4, label="player stats")

    assert not outcome.success
    assert outcome.count == 4
    assert "database is locked" in outcome.error
    assert len(calls) == 2
    assert "player stats" in caplog.text


def test_empty_input_succeeds_without_writing():
    outcome = write_in_batches([], lambda _batch: pytest.fail("should not write"))

    assert outcome.success
    assert outcome.count == 0


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        write_in_batches([1], lambda _batch: None, batch_size=0)
