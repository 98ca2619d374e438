import asyncio
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, ForeignKey, Index, Integer,
    JSON, String, Text, delete, func, select, update,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from config.settings import settings
from core.errors import AlreadyAnswered, NotFound, StorageUnavailable, ValidationError
from core.models import QuizQuestion, QuizRecord, VocabularyItem, _now
from core.scheduler import scheduler

logger = logging.getLogger(__name__)

# compare-and-set rounds before a word update gives up
SCHEDULE_ATTEMPTS = 3

# ═══════════════════════════════════════════════════
#  Tables
# ═══════════════════════════════════════════════════
Base = declarative_base()

class UserRow(Base):
    __tablename__ = "users"
    id         = Column(BigInteger, primary_key=True, autoincrement=False)
    username   = Column(String(255), default="")
    first_name = Column(String(255), default="")
    last_name  = Column(String(255), default="")
    created_at = Column(DateTime, default=_now)

class WordRow(Base):
    __tablename__ = "words"
    __table_args__ = (
        Index("ix_words_user_next_review", "user_id", "next_review"),
    )
    id          = Column(Integer, primary_key=True, autoincrement=True)
    user_id     = Column(BigInteger, nullable=False, index=True)
    word        = Column(String(255), nullable=False)
    translation = Column(String(255), nullable=False)
    context     = Column(Text, default="")
    created_at  = Column(DateTime, default=_now)
    last_review = Column(DateTime, default=_now)
    next_review = Column(DateTime, nullable=False)
    interval    = Column(Integer, default=1)
    difficulty  = Column(Integer, default=0)

class QuizRow(Base):
    __tablename__ = "quizzes"
    id             = Column(Integer, primary_key=True, autoincrement=True)
    user_id        = Column(BigInteger, nullable=False, index=True)
    word_id        = Column(Integer, ForeignKey("words.id"), nullable=False)
    options        = Column(JSON, default=list)
    correct_index  = Column(Integer, nullable=False)
    selected_index = Column(Integer, nullable=True)
    correct        = Column(Boolean, nullable=True)
    created_at     = Column(DateTime, default=_now)
    answered_at    = Column(DateTime, nullable=True)


def _to_item(r: WordRow) -> VocabularyItem:
    return VocabularyItem(
        id=r.id, user_id=r.user_id,
        headword=r.word, translation=r.translation, context=r.context or "",
        last_reviewed_at=r.last_review, next_review_at=r.next_review,
        interval_days=r.interval, difficulty=r.difficulty,
        created_at=r.created_at,
    )

def _to_quiz(r: QuizRow) -> QuizRecord:
    return QuizRecord(
        id=r.id, user_id=r.user_id, item_id=r.word_id,
        options=tuple(r.options or []), correct_idx=r.correct_index,
        selected_idx=r.selected_index, correct=r.correct,
        created_at=r.created_at, answered_at=r.answered_at,
    )

def _apply_schedule(row: WordRow, item: VocabularyItem):
    row.last_review = item.last_reviewed_at
    row.next_review = item.next_review_at
    row.interval    = item.interval_days
    row.difficulty  = item.difficulty

# ═══════════════════════════════════════════════════
#  Per-item locks (read-modify-write of scheduling fields)
# ═══════════════════════════════════════════════════
class _ItemLocks:
    """One lock per word id, kept only while someone holds or awaits it."""

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, item_id: int):
        lock = self._locks.setdefault(item_id, asyncio.Lock())
        self._users[item_id] = self._users.get(item_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[item_id] -= 1
            if not self._users[item_id]:
                del self._users[item_id]
                del self._locks[item_id]

# ═══════════════════════════════════════════════════
#  Storage layer
# ═══════════════════════════════════════════════════
class Database:
    def __init__(self, url: str = settings.DATABASE_URL):
        self.url = url
        db_file = make_url(url).database
        if url.startswith("sqlite") and db_file and db_file != ":memory:":
            folder = os.path.dirname(db_file)
            if folder:
                os.makedirs(folder, exist_ok=True)
        self.engine  = create_async_engine(url, echo=False)
        self.session = async_sessionmaker(self.engine, expire_on_commit=False)
        self._locks  = _ItemLocks()

    @asynccontextmanager
    async def _session(self):
        try:
            async with self.session() as s:
                yield s
        except SQLAlchemyError as e:
            logger.error(f"database error: {e}")
            raise StorageUnavailable(str(e)) from e

    async def init(self):
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StorageUnavailable(str(e)) from e

    async def close(self):
        await self.engine.dispose()

    # ── users ─────────────────────────────────────
    async def register_user(self, user_id: int, username: str = "",
                            first_name: str = "", last_name: str = ""):
        async with self._session() as s:
            row = await s.get(UserRow, user_id)
            if row is None:
                row = UserRow(id=user_id)
                s.add(row)
                logger.info(f"registered user {user_id}")
            row.username   = username or ""
            row.first_name = first_name or ""
            row.last_name  = last_name or ""
            await s.commit()

    async def all_user_ids(self) -> List[int]:
        async with self._session() as s:
            res = await s.execute(select(UserRow.id).order_by(UserRow.id))
            return list(res.scalars().all())

    # ── words ─────────────────────────────────────
    async def save_new_item(self, item: VocabularyItem) -> int:
        if not item.headword.strip() or not item.translation.strip():
            raise ValidationError("word and translation cannot be empty")
        row = WordRow(
            user_id=item.user_id, word=item.headword,
            translation=item.translation, context=item.context,
            created_at=item.created_at,
        )
        _apply_schedule(row, item)
        async with self._session() as s:
            s.add(row)
            await s.commit()
            await s.refresh(row)
        return row.id

    async def get_item(self, item_id: int, user_id: Optional[int] = None) -> VocabularyItem:
        async with self._session() as s:
            row = await s.get(WordRow, item_id)
        if row is None or (user_id is not None and row.user_id != user_id):
            raise NotFound(f"word {item_id} not found")
        return _to_item(row)

    async def fetch_all_items(self, user_id: int) -> List[VocabularyItem]:
        async with self._session() as s:
            res = await s.execute(
                select(WordRow)
                .where(WordRow.user_id == user_id)
                .order_by(WordRow.created_at.desc(), WordRow.id.desc())
            )
            return [_to_item(r) for r in res.scalars().all()]

    async def fetch_due_items(self, user_id: int, now: datetime, limit: int) -> List[VocabularyItem]:
        async with self._session() as s:
            res = await s.execute(
                select(WordRow)
                .where(WordRow.user_id == user_id, WordRow.next_review <= now)
                .order_by(WordRow.next_review.asc(), WordRow.id.asc())
                .limit(limit)
            )
            return [_to_item(r) for r in res.scalars().all()]

    async def persist_schedule_update(self, item: VocabularyItem):
        async with self._session() as s:
            row = await s.get(WordRow, item.id)
            if row is None:
                raise NotFound(f"word {item.id} not found")
            _apply_schedule(row, item)
            await s.commit()

    async def _reschedule(self, s, item_id: int, correct: bool, now: datetime) -> VocabularyItem:
        """
        Read, schedule and write one word inside the open session ``s``.

        The write only lands if the row still holds the values it was
        scheduled from; otherwise it is re-read and scheduled again, so a
        writer in another process cannot have its review overwritten.
        """
        for _ in range(SCHEDULE_ATTEMPTS):
            row = await s.scalar(
                select(WordRow).where(WordRow.id == item_id)
                .execution_options(populate_existing=True)
            )
            if row is None:
                raise NotFound(f"word {item_id} not found")
            before  = _to_item(row)
            updated = scheduler.review(before, correct, now)
            res = await s.execute(
                update(WordRow)
                .where(WordRow.id == item_id,
                       WordRow.interval == before.interval_days,
                       WordRow.next_review == before.next_review_at)
                .values(last_review=updated.last_reviewed_at,
                        next_review=updated.next_review_at,
                        interval=updated.interval_days,
                        difficulty=updated.difficulty)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 1:
                return updated
            logger.warning(f"word {item_id} changed while being rescheduled, retrying")
        raise StorageUnavailable(f"word {item_id} kept changing, review not saved")

    async def review_item(self, item_id: int, correct: bool, now: datetime) -> VocabularyItem:
        """Locked read → schedule → write for one word."""
        async with self._locks.hold(item_id):
            async with self._session() as s:
                updated = await self._reschedule(s, item_id, correct, now)
                await s.commit()
        return updated

    async def delete_item(self, item_id: int, user_id: int):
        async with self._locks.hold(item_id):
            async with self._session() as s:
                row = await s.get(WordRow, item_id)
                if row is None or row.user_id != user_id:
                    raise NotFound("word not found or not owned by user")
                await s.execute(delete(QuizRow).where(QuizRow.word_id == item_id))
                await s.delete(row)
                await s.commit()

    # ── quizzes ───────────────────────────────────
    async def save_quiz(self, user_id: int, quiz: QuizQuestion) -> int:
        row = QuizRow(
            user_id=user_id, word_id=quiz.item_id,
            options=list(quiz.options), correct_index=quiz.correct_idx,
        )
        async with self._session() as s:
            s.add(row)
            await s.commit()
            await s.refresh(row)
        return row.id

    async def get_quiz(self, quiz_id: int, user_id: int) -> QuizRecord:
        async with self._session() as s:
            row = await s.get(QuizRow, quiz_id)
        if row is None or row.user_id != user_id:
            raise NotFound(f"quiz {quiz_id} not found")
        return _to_quiz(row)

    async def answer_quiz(self, quiz_id: int, user_id: int, selected_idx: int,
                          now: datetime) -> Tuple[QuizRecord, VocabularyItem]:
        """
        Score a stored quiz and reschedule its word in one transaction.

        Correctness comes from the stored correct index, never from the
        caller. The quiz is claimed with a conditional update on its
        unanswered row, so across processes sharing the database only one
        submission scores it; the word is rescheduled in the same
        transaction.
        """
        issued = await self.get_quiz(quiz_id, user_id)
        if not 0 <= selected_idx < len(issued.options):
            raise ValidationError(f"option index {selected_idx} out of range")
        correct = selected_idx == issued.correct_idx

        async with self._locks.hold(issued.item_id):
            async with self._session() as s:
                res = await s.execute(
                    update(QuizRow)
                    .where(QuizRow.id == quiz_id,
                           QuizRow.user_id == user_id,
                           QuizRow.selected_index.is_(None))
                    .values(selected_index=selected_idx, correct=correct, answered_at=now)
                    .execution_options(synchronize_session=False)
                )
                if res.rowcount != 1:
                    if await s.get(QuizRow, quiz_id) is None:
                        raise NotFound(f"quiz {quiz_id} not found")
                    raise AlreadyAnswered(quiz_id)
                updated = await self._reschedule(s, issued.item_id, correct, now)
                await s.commit()

        record = replace(issued, selected_idx=selected_idx, correct=correct, answered_at=now)
        return record, updated

    # ── stats ─────────────────────────────────────
    async def get_stats(self, user_id: int, now: datetime) -> Dict[str, Any]:
        async with self._session() as s:
            total = await s.scalar(
                select(func.count(WordRow.id)).where(WordRow.user_id == user_id)
            ) or 0
            due = await s.scalar(
                select(func.count(WordRow.id))
                .where(WordRow.user_id == user_id, WordRow.next_review <= now)
            ) or 0
            answered = await s.scalar(
                select(func.count(QuizRow.id))
                .where(QuizRow.user_id == user_id, QuizRow.selected_index.is_not(None))
            ) or 0
            correct = await s.scalar(
                select(func.count(QuizRow.id))
                .where(QuizRow.user_id == user_id, QuizRow.correct.is_(True))
            ) or 0
        return {
            "total": total, "due": due,
            "answered": answered, "correct": correct, "wrong": answered - correct,
        }

db = Database()
