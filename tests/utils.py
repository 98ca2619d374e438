from datetime import datetime, timedelta

from core.models import VocabularyItem

T0 = datetime(2026, 1, 1, 12, 0, 0)
USER = 1001
OTHER_USER = 2002


def make_item(item_id, headword, translation, *, user_id=USER, interval=1,
              difficulty=0, next_review=None, last_review=T0):
    return VocabularyItem(
        id=item_id, user_id=user_id, headword=headword, translation=translation,
        last_reviewed_at=last_review,
        next_review_at=next_review or last_review + timedelta(days=interval),
        interval_days=interval, difficulty=difficulty, created_at=last_review,
    )


async def add_words(service, user_id, pairs, now=T0):
    return [await service.add_word(user_id, w, t, now=now) for w, t in pairs]
