"""
Vocabulary service: the seam between the delivery layers (Telegram bot,
mini-app API) and the scheduler/quiz engine over the storage layer.
"""
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.analytics_engine import analytics
from core.database import Database
from core.errors import NotFound, ValidationError
from core.models import QuizQuestion, VocabularyItem, _now
from core.quiz_engine import generate_quiz
from core.scheduler import DEFAULT_DUE_LIMIT

logger = logging.getLogger(__name__)

ADD_SEPARATOR = " - "


def parse_add_command(text: str) -> Tuple[str, str, str]:
    """
    Split ``"word - translation"`` or ``"word - translation - context"``.

    Anything after the second separator belongs to the context, so the
    context itself may contain " - ".
    """
    parts = (text or "").strip().split(ADD_SEPARATOR)
    if len(parts) < 2:
        raise ValidationError("use the format: word - translation")
    word, translation = parts[0].strip(), parts[1].strip()
    context = ADD_SEPARATOR.join(parts[2:]).strip()
    if context.startswith("(") and context.endswith(")"):
        context = context[1:-1].strip()
    if not word or not translation:
        raise ValidationError("word and translation cannot be empty")
    return word, translation, context


@dataclass(frozen=True)
class IssuedQuiz:
    quiz_id: int
    question: QuizQuestion


@dataclass(frozen=True)
class AnswerResult:
    quiz_id: int
    correct: bool
    selected_idx: int
    correct_idx: int
    options: Tuple[str, ...]
    item: VocabularyItem

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_idx]


class VocabularyService:
    def __init__(self, database: Database, rng: Optional[random.Random] = None,
                 due_limit: int = DEFAULT_DUE_LIMIT):
        self.db = database
        self.rng = rng or random.Random()
        self.due_limit = due_limit

    async def register_user(self, user_id: int, username: str = "",
                            first_name: str = "", last_name: str = ""):
        await self.db.register_user(user_id, username, first_name, last_name)

    async def add_word(self, user_id: int, word: str, translation: str,
                       context: str = "", now: Optional[datetime] = None) -> VocabularyItem:
        item = VocabularyItem.new(user_id, word, translation, context, now or _now())
        item_id = await self.db.save_new_item(item)
        logger.info(f"user {user_id} added word #{item_id} '{item.headword}'")
        return await self.db.get_item(item_id, user_id)

    async def list_words(self, user_id: int) -> List[VocabularyItem]:
        return await self.db.fetch_all_items(user_id)

    async def due_words(self, user_id: int, now: Optional[datetime] = None) -> List[VocabularyItem]:
        return await self.db.fetch_due_items(user_id, now or _now(), self.due_limit)

    async def delete_word(self, user_id: int, item_id: int) -> VocabularyItem:
        item = await self.db.get_item(item_id, user_id)
        await self.db.delete_item(item_id, user_id)
        logger.info(f"user {user_id} deleted word #{item_id}")
        return item

    async def delete_word_at(self, user_id: int, position: int) -> VocabularyItem:
        """Delete by 1-based position in the /words listing."""
        words = await self.list_words(user_id)
        if not 1 <= position <= len(words):
            raise NotFound(f"no word number {position}, you have {len(words)}")
        return await self.delete_word(user_id, words[position - 1].id)

    async def new_quiz(self, user_id: int) -> IssuedQuiz:
        words = await self.list_words(user_id)
        question = generate_quiz(words, self.rng)
        quiz_id = await self.db.save_quiz(user_id, question)
        logger.info(f"quiz #{quiz_id} issued to user {user_id} for word #{question.item_id}")
        return IssuedQuiz(quiz_id, question)

    async def answer_quiz(self, user_id: int, quiz_id: int, selected_idx: int,
                          now: Optional[datetime] = None) -> AnswerResult:
        record, item = await self.db.answer_quiz(quiz_id, user_id, selected_idx, now or _now())
        logger.info(
            f"quiz #{quiz_id} answered by user {user_id}: "
            f"{'correct' if record.correct else 'wrong'}, next review in {item.interval_days}d"
        )
        return AnswerResult(
            quiz_id=record.id, correct=bool(record.correct),
            selected_idx=selected_idx, correct_idx=record.correct_idx,
            options=record.options, item=item,
        )

    async def stats(self, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        words = await self.list_words(user_id)
        counts = await self.db.get_stats(user_id, now or _now())
        return analytics.get_report(words, counts)
