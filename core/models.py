from dataclasses import dataclass, field
from typing import Optional, Tuple
from datetime import datetime, timedelta, timezone

from core.errors import ValidationError

MIN_INTERVAL = 1
MIN_DIFFICULTY = 0
MAX_DIFFICULTY = 5

def _now() -> datetime:
    # naive UTC, the form SQLAlchemy DateTime columns round-trip
    return datetime.now(timezone.utc).replace(tzinfo=None)

@dataclass(frozen=True)
class VocabularyItem:
    id: Optional[int]
    user_id: int
    headword: str
    translation: str
    context: str = ""
    last_reviewed_at: datetime = field(default_factory=_now)
    next_review_at: datetime = field(default_factory=lambda: _now() + timedelta(days=1))
    interval_days: int = MIN_INTERVAL
    difficulty: int = MIN_DIFFICULTY
    created_at: datetime = field(default_factory=_now)

    def __post_init__(self):
        if not self.headword.strip() or not self.translation.strip():
            raise ValidationError("word and translation cannot be empty")
        if self.interval_days < MIN_INTERVAL:
            raise ValidationError(f"interval must be at least {MIN_INTERVAL} day")
        if not MIN_DIFFICULTY <= self.difficulty <= MAX_DIFFICULTY:
            raise ValidationError(f"difficulty must be within [{MIN_DIFFICULTY}, {MAX_DIFFICULTY}]")

    @classmethod
    def new(cls, user_id: int, headword: str, translation: str,
            context: str = "", now: Optional[datetime] = None) -> "VocabularyItem":
        """A freshly added word: due tomorrow, interval 1, difficulty 0."""
        now = now or _now()
        return cls(
            id=None, user_id=user_id,
            headword=(headword or "").strip(),
            translation=(translation or "").strip(),
            context=(context or "").strip(),
            last_reviewed_at=now,
            next_review_at=now + timedelta(days=MIN_INTERVAL),
            interval_days=MIN_INTERVAL,
            difficulty=MIN_DIFFICULTY,
            created_at=now,
        )

@dataclass(frozen=True)
class QuizQuestion:
    item_id: int
    question: str
    options: Tuple[str, ...]
    correct_idx: int

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_idx]

@dataclass(frozen=True)
class QuizRecord:
    """A quiz as it was issued and stored server-side."""
    id: int
    user_id: int
    item_id: int
    options: Tuple[str, ...]
    correct_idx: int
    selected_idx: Optional[int] = None
    correct: Optional[bool] = None
    created_at: datetime = field(default_factory=_now)
    answered_at: Optional[datetime] = None

    @property
    def answered(self) -> bool:
        return self.selected_idx is not None
