import logging
import random
from typing import List, Sequence

from core.errors import InsufficientVocabulary
from core.models import QuizQuestion, VocabularyItem

logger = logging.getLogger(__name__)

OPTIONS_PER_QUIZ = 4
QUESTION_TEMPLATE = "How do you translate: {headword}?"


def _pick_distractors(target: VocabularyItem, others: List[VocabularyItem],
                      rng: random.Random, count: int) -> List[str]:
    """
    Shuffle the candidates once and walk them a single time.

    Distinct translations are preferred; only when the pool runs dry are
    leftover candidates used even if their text repeats one already chosen.
    """
    pool = list(others)
    rng.shuffle(pool)

    seen = {target.translation.casefold()}
    picked: List[str] = []
    leftovers: List[VocabularyItem] = []
    for item in pool:
        if len(picked) == count:
            break
        key = item.translation.casefold()
        if key in seen:
            leftovers.append(item)
            continue
        seen.add(key)
        picked.append(item.translation)

    if len(picked) < count:
        logger.warning(
            f"only {len(picked)} distinct distractors for item {target.id}, "
            f"reusing duplicate translations"
        )
        picked.extend(i.translation for i in leftovers[:count - len(picked)])
    return picked


def generate_quiz(items: Sequence[VocabularyItem], rng: random.Random) -> QuizQuestion:
    if len(items) < OPTIONS_PER_QUIZ:
        raise InsufficientVocabulary(len(items), OPTIONS_PER_QUIZ)

    target_idx = rng.randrange(len(items))
    target = items[target_idx]
    correct_idx = rng.randrange(OPTIONS_PER_QUIZ)

    others = [item for i, item in enumerate(items) if i != target_idx]
    distractors = _pick_distractors(target, others, rng, OPTIONS_PER_QUIZ - 1)

    options = list(distractors)
    options.insert(correct_idx, target.translation)

    return QuizQuestion(
        item_id=target.id,
        question=QUESTION_TEMPLATE.format(headword=target.headword),
        options=tuple(options),
        correct_idx=correct_idx,
    )
