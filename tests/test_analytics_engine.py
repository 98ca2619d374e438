from core.analytics_engine import analytics
from tests.utils import make_item


def test_stage_counts():
    items = [
        make_item(1, "a", "1", interval=1),
        make_item(2, "b", "2", interval=6),
        make_item(3, "c", "3", interval=15),
        make_item(4, "d", "4", interval=37),
    ]
    assert analytics.stage_counts(items) == {"new": 1, "learning": 2, "mastered": 1}


def test_report_without_answers():
    report = analytics.get_report([], {"total": 0, "due": 0, "answered": 0, "correct": 0, "wrong": 0})
    assert report["accuracy"] == 0.0
    assert report["hardest"] == []


def test_report_accuracy_and_hardest_words():
    items = [
        make_item(1, "a", "1", difficulty=0),
        make_item(2, "b", "2", difficulty=4),
        make_item(3, "c", "3", difficulty=2),
    ]
    report = analytics.get_report(items, {"total": 3, "due": 1, "answered": 8, "correct": 6, "wrong": 2})
    assert report["accuracy"] == 75.0
    assert [w.id for w in report["hardest"]] == [2, 3]
