from typing import Any, Dict, List
from core.models import VocabularyItem

# interval thresholds (days) for the word stages shown in /stats
LEARNING_FROM = 6
MASTERED_FROM = 30

class AnalyticsEngine:

    @staticmethod
    def stage_counts(items: List[VocabularyItem]) -> Dict[str, int]:
        counts = {"new": 0, "learning": 0, "mastered": 0}
        for item in items:
            if item.interval_days >= MASTERED_FROM:
                counts["mastered"] += 1
            elif item.interval_days >= LEARNING_FROM:
                counts["learning"] += 1
            else:
                counts["new"] += 1
        return counts

    @staticmethod
    def get_report(items: List[VocabularyItem], stats: Dict[str, Any]) -> Dict[str, Any]:
        answered = stats.get("answered", 0)
        correct  = stats.get("correct", 0)
        accuracy = round(correct / answered * 100, 1) if answered else 0.0
        hardest  = sorted((i for i in items if i.difficulty > 0),
                          key=lambda i: (-i.difficulty, i.next_review_at))
        return {
            "total_words": stats.get("total", len(items)),
            "due_words":   stats.get("due", 0),
            "answered":    answered,
            "correct":     correct,
            "wrong":       stats.get("wrong", answered - correct),
            "accuracy":    accuracy,
            "stages":      AnalyticsEngine.stage_counts(items),
            "hardest":     hardest[:3],
        }

analytics = AnalyticsEngine()
