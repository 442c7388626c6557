"""
Session Pydantic Models

Structured results returned by the training session engine. Every result
carries a `success` discriminant; failures are `SessionError` values rather
than raised exceptions.
"""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .evaluation_models import Verdict


class ErrorCode(str, Enum):
    """Failure discriminant for session operations"""
    NO_WORDS_AVAILABLE = "no_words_available"
    SESSION_NOT_FOUND = "session_not_found"
    NO_CURRENT_WORD = "no_current_word"
    INVALID_SESSION_TYPE = "invalid_session_type"


class SessionError(BaseModel):
    """
    Failed session operation.

    Example:
    {
        "success": false,
        "error": "no_words_available",
        "message": "No words available for this session type",
        "all_mastered": true,
        "vocabulary_empty": false
    }
    """
    success: Literal[False] = False
    error: ErrorCode
    message: str
    all_mastered: Optional[bool] = Field(
        default=None,
        description="Set for no_words_available: every word is fully mastered"
    )
    vocabulary_empty: Optional[bool] = Field(
        default=None,
        description="Set for no_words_available: the learner has no words at all"
    )


class WordStats(BaseModel):
    times_asked: int
    times_correct: int
    leitner_box: int
    is_new: bool


class PresentedWord(BaseModel):
    """The word currently shown to the learner"""
    index: int
    total: int
    direction: str
    word_id: int
    question: str
    answer_hint: str
    example_sentence: Optional[str] = None
    category: str
    is_verb: bool
    is_retry_attempt: bool = False
    stats: WordStats


class StartResult(BaseModel):
    success: Literal[True] = True
    session_id: str
    session_type: str
    total_words: int
    current_word: PresentedWord


class SubmitResult(BaseModel):
    """
    Outcome of one submission.

    An 'almost' verdict on a first submission comes back with
    allow_retry=True and leaves the queue untouched.
    """
    success: Literal[True] = True
    result: Verdict
    message: Optional[str] = None
    allow_retry: bool = False
    accuracy: int = 0
    correct_answer: Optional[str] = None
    new_leitner_box: Optional[int] = Field(
        default=None,
        description="Only set when the answer updated the progress record"
    )
    is_retry_attempt: bool = False
    requeued: bool = False
    char_alignment: Optional[List[bool]] = None
    stars_earned: int = 0
    is_complete: bool = False
    next_word: Optional[PresentedWord] = None


class AchievementEvent(BaseModel):
    type: str
    milestone: int
    message: str


class SessionSummary(BaseModel):
    success: Literal[True] = True
    session_id: str
    words_asked: int
    words_correct: int
    accuracy: int
    stars_earned: int
    new_achievements: List[AchievementEvent] = Field(default_factory=list)
    all_mastered: bool = False


class SessionState(BaseModel):
    """Snapshot used by a reconnecting client"""
    success: Literal[True] = True
    session_id: str
    session_type: str
    total_words: int
    current_index: int
    words_asked: int
    words_correct: int
    stars_earned: int
    is_complete: bool
    current_word: Optional[PresentedWord] = None


class SaveResult(BaseModel):
    success: Literal[True] = True
    session_id: str
    status: str
    words_asked: int
    words_correct: int
    stars_earned: int
