from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, List

from core.models import VocabularyItem, MIN_INTERVAL, MIN_DIFFICULTY, MAX_DIFFICULTY

DEFAULT_DUE_LIMIT = 10

class IntervalScheduler:
    """Two-branch interval rule: a simplified SM-2 without an ease factor."""

    FIRST_SUCCESS_INTERVAL = 6
    # interval * 5 // 2 == floor(interval * 2.5) without float rounding
    GROWTH_NUM, GROWTH_DEN = 5, 2

    @staticmethod
    def next_interval(interval: int, correct: bool) -> int:
        if not correct:
            return MIN_INTERVAL
        if interval <= MIN_INTERVAL:
            return IntervalScheduler.FIRST_SUCCESS_INTERVAL
        return interval * IntervalScheduler.GROWTH_NUM // IntervalScheduler.GROWTH_DEN

    @staticmethod
    def next_difficulty(difficulty: int, correct: bool) -> int:
        if correct:
            return max(MIN_DIFFICULTY, difficulty - 1)
        return min(MAX_DIFFICULTY, difficulty + 1)

    @staticmethod
    def review(item: VocabularyItem, correct: bool, now: datetime) -> VocabularyItem:
        """Return the item's next state; the input item is left untouched."""
        interval = IntervalScheduler.next_interval(item.interval_days, correct)
        return replace(
            item,
            interval_days=interval,
            difficulty=IntervalScheduler.next_difficulty(item.difficulty, correct),
            last_reviewed_at=now,
            next_review_at=now + timedelta(days=interval),
        )


def select_due(items: Iterable[VocabularyItem], now: datetime,
               limit: int = DEFAULT_DUE_LIMIT) -> List[VocabularyItem]:
    """Most overdue first, at most `limit` items."""
    if limit <= 0:
        return []
    due = [i for i in items if i.next_review_at <= now]
    due.sort(key=lambda i: i.next_review_at)
    return due[:limit]

scheduler = IntervalScheduler()
