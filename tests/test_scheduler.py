import math
import random
from datetime import timedelta

import pytest

from core.scheduler import IntervalScheduler, scheduler, select_due
from tests.utils import T0, make_item


@pytest.mark.parametrize("difficulty", range(6))
def test_first_correct_review_jumps_to_six_days(difficulty):
    item = make_item(1, "apple", "яблоко", interval=1, difficulty=difficulty)
    assert scheduler.review(item, True, T0).interval_days == 6


@pytest.mark.parametrize("interval", [2, 3, 6, 7, 15, 37, 93, 1000, 123457])
def test_correct_review_grows_interval_by_two_and_a_half(interval):
    item = make_item(1, "apple", "яблоко", interval=interval)
    assert scheduler.review(item, True, T0).interval_days == math.floor(interval * 2.5)


@pytest.mark.parametrize("interval", [1, 2, 6, 15, 365, 10_000])
def test_wrong_review_resets_interval(interval):
    item = make_item(1, "apple", "яблоко", interval=interval, difficulty=2)
    assert scheduler.review(item, False, T0).interval_days == 1


def test_difficulty_moves_by_one_and_stays_in_bounds():
    item = make_item(1, "apple", "яблоко", difficulty=0)
    assert scheduler.review(item, True, T0).difficulty == 0
    assert scheduler.review(item, False, T0).difficulty == 1

    top = make_item(1, "apple", "яблоко", difficulty=5)
    assert scheduler.review(top, False, T0).difficulty == 5
    assert scheduler.review(top, True, T0).difficulty == 4


def test_random_outcome_sequences_keep_invariants():
    rng = random.Random(2026)
    item = make_item(1, "apple", "яблоко")
    for step in range(500):
        now = T0 + timedelta(days=step)
        item = scheduler.review(item, rng.random() < 0.6, now)
        assert 0 <= item.difficulty <= 5
        assert item.interval_days >= 1
        assert item.last_reviewed_at == now
        assert item.next_review_at == item.last_reviewed_at + timedelta(days=item.interval_days)
        if item.interval_days > 10_000:
            item = make_item(1, "apple", "яблоко", difficulty=item.difficulty, last_review=now)


def test_review_returns_new_value_and_leaves_input_untouched():
    item = make_item(1, "apple", "яблоко", interval=6, difficulty=3)
    updated = scheduler.review(item, True, T0 + timedelta(days=6))
    assert updated is not item
    assert item.interval_days == 6 and item.difficulty == 3
    assert updated.id == item.id and updated.headword == item.headword


def test_correct_then_wrong_scenario():
    item = make_item(1, "apple", "яблоко", interval=1, difficulty=0)

    item = scheduler.review(item, True, T0)
    assert (item.interval_days, item.difficulty) == (6, 0)
    assert item.next_review_at == T0 + timedelta(days=6)

    t1 = T0 + timedelta(days=6)
    item = scheduler.review(item, False, t1)
    assert (item.interval_days, item.difficulty) == (1, 1)
    assert item.next_review_at == t1 + timedelta(days=1)


def test_growth_constant_matches_floor():
    assert IntervalScheduler.next_interval(3, True) == 7
    assert IntervalScheduler.next_interval(5, True) == 12


# ── select_due ────────────────────────────────────
def test_select_due_orders_most_overdue_first_and_skips_future():
    items = [
        make_item(1, "a", "1", next_review=T0 - timedelta(hours=1)),
        make_item(2, "b", "2", next_review=T0 + timedelta(seconds=1)),
        make_item(3, "c", "3", next_review=T0 - timedelta(days=3)),
        make_item(4, "d", "4", next_review=T0),
    ]
    due = select_due(items, T0, limit=10)
    assert [i.id for i in due] == [3, 1, 4]


def test_select_due_truncates_at_limit():
    items = [make_item(i, f"w{i}", f"t{i}", next_review=T0 - timedelta(days=i)) for i in range(1, 16)]
    due = select_due(items, T0, limit=10)
    assert len(due) == 10
    assert [i.id for i in due] == list(range(15, 5, -1))


def test_select_due_empty_input_or_nothing_due():
    assert select_due([], T0) == []
    assert select_due([make_item(1, "a", "1", next_review=T0 + timedelta(days=1))], T0) == []
