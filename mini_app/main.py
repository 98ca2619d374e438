"""
Mini App API (FastAPI)
Run: uvicorn mini_app.main:app --host 0.0.0.0 --port 8080 --reload
"""
import logging
from datetime import datetime
from typing import List

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config.settings import settings
from core.database import db
from core.errors import (
    AlreadyAnswered, InsufficientVocabulary, NotFound, StorageUnavailable,
    ValidationError, VocabularyError,
)
from core.models import VocabularyItem
from core.service import VocabularyService

logger = logging.getLogger(__name__)

app = FastAPI(title="Vocabulary Trainer", version="1.0")
app.add_middleware(CORSMiddleware, allow_origins=["*"],
                   allow_methods=["*"], allow_headers=["*"])

_service = VocabularyService(db, due_limit=settings.DUE_LIMIT)

def get_service() -> VocabularyService:
    return _service

# ── schemas ──────────────────────────────────────
class WordIn(BaseModel):
    word: str
    translation: str
    context: str = ""

class WordOut(BaseModel):
    id: int
    word: str
    translation: str
    context: str
    interval_days: int
    difficulty: int
    last_reviewed_at: datetime
    next_review_at: datetime

    @classmethod
    def of(cls, item: VocabularyItem) -> "WordOut":
        return cls(
            id=item.id, word=item.headword, translation=item.translation,
            context=item.context, interval_days=item.interval_days,
            difficulty=item.difficulty, last_reviewed_at=item.last_reviewed_at,
            next_review_at=item.next_review_at,
        )

class QuizOut(BaseModel):
    quiz_id: int
    word_id: int
    question: str
    options: List[str]

class AnswerIn(BaseModel):
    # the client sends only its choice; correctness is looked up server-side
    selected_index: int = Field(ge=0)

class AnswerOut(BaseModel):
    quiz_id: int
    correct: bool
    selected_index: int
    correct_index: int
    correct_option: str
    word: WordOut

# ── error mapping ────────────────────────────────
_STATUS = [
    (AlreadyAnswered, 409),
    (ValidationError, 422),
    (InsufficientVocabulary, 409),
    (NotFound, 404),
    (StorageUnavailable, 503),
]

@app.exception_handler(VocabularyError)
async def vocabulary_error_handler(request: Request, exc: VocabularyError):
    status = next((code for cls, code in _STATUS if isinstance(exc, cls)), 400)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status,
                        content={"error": type(exc).__name__, "detail": str(exc)})

# ── routes ───────────────────────────────────────
@app.get("/api/users/{user_id}/words", response_model=List[WordOut])
async def list_words(user_id: int, svc: VocabularyService = Depends(get_service)):
    return [WordOut.of(w) for w in await svc.list_words(user_id)]

@app.post("/api/users/{user_id}/words", response_model=WordOut, status_code=201)
async def add_word(user_id: int, payload: WordIn, svc: VocabularyService = Depends(get_service)):
    item = await svc.add_word(user_id, payload.word, payload.translation, payload.context)
    return WordOut.of(item)

@app.delete("/api/users/{user_id}/words/{word_id}", status_code=204)
async def delete_word(user_id: int, word_id: int, svc: VocabularyService = Depends(get_service)):
    await svc.delete_word(user_id, word_id)

@app.get("/api/users/{user_id}/due", response_model=List[WordOut])
async def due_words(user_id: int, svc: VocabularyService = Depends(get_service)):
    return [WordOut.of(w) for w in await svc.due_words(user_id)]

@app.post("/api/users/{user_id}/quiz", response_model=QuizOut, status_code=201)
async def new_quiz(user_id: int, svc: VocabularyService = Depends(get_service)):
    issued = await svc.new_quiz(user_id)
    return QuizOut(
        quiz_id=issued.quiz_id, word_id=issued.question.item_id,
        question=issued.question.question, options=list(issued.question.options),
    )

@app.post("/api/users/{user_id}/quiz/{quiz_id}/answer", response_model=AnswerOut)
async def answer_quiz(user_id: int, quiz_id: int, payload: AnswerIn,
                      svc: VocabularyService = Depends(get_service)):
    res = await svc.answer_quiz(user_id, quiz_id, payload.selected_index)
    return AnswerOut(
        quiz_id=res.quiz_id, correct=res.correct,
        selected_index=res.selected_idx, correct_index=res.correct_idx,
        correct_option=res.correct_option, word=WordOut.of(res.item),
    )

@app.get("/api/users/{user_id}/stats")
async def get_stats(user_id: int, svc: VocabularyService = Depends(get_service)):
    report = await svc.stats(user_id)
    report["hardest"] = [WordOut.of(w).model_dump(mode="json") for w in report["hardest"]]
    return report

@app.on_event("startup")
async def startup():
    await db.init()

@app.on_event("shutdown")
async def shutdown():
    await db.close()

