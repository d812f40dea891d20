"""Tests for the keyed thread-pool batch runner."""

import time

import pytest

from kegg_abundance.parallel import run_batch


def test_results_follow_input_order_not_completion_order():
    delays = {"a": 0.2, "b": 0.0, "c": 0.1}

    def work(key):
        time.sleep(delays[key])
        return key.upper()

    batch = run_batch(["a", "b", "c"], work, workers=3)

    assert batch.ordered_results() == ["A", "B", "C"]
    assert batch.succeeded == 3
    assert batch.failed == 0


def test_failed_unit_does_not_cancel_siblings():
    def work(key):
        if key == 2:
            raise RuntimeError("boom")
        return key * 10

    batch = run_batch([1, 2, 3], work, workers=2)

    assert batch.ordered_results() == [10, 30]
    assert list(batch.failures) == [2]
    assert str(batch.failures[2]) == "boom"


def test_duplicate_keys_rejected():
    with pytest.raises(ValueError, match="duplicate"):
        run_batch(["x", "x"], lambda key: key)


def test_empty_batch():
    batch = run_batch([], lambda key: key)

    assert batch.ordered_results() == []
    assert batch.failed == 0
