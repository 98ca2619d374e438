"""Error taxonomy shared by the scheduler, quiz engine and storage layer."""


class VocabularyError(Exception):
    """Base class for every failure the trainer reports to its callers."""


class ValidationError(VocabularyError):
    """Rejected input: empty word/translation, bad command format, bad index."""


class AlreadyAnswered(ValidationError):
    def __init__(self, quiz_id: int):
        super().__init__(f"quiz {quiz_id} has already been answered")
        self.quiz_id = quiz_id


class InsufficientVocabulary(VocabularyError):
    def __init__(self, available: int, required: int = 4):
        super().__init__(f"need at least {required} words to build a quiz, have {available}")
        self.available = available
        self.required = required


class NotFound(VocabularyError):
    """Unknown id, or an id owned by another user."""


class StorageUnavailable(VocabularyError):
    """The database could not be reached; safe for the caller to retry."""
