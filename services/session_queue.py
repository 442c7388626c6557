"""In-memory state of a running training session: the word queue and its entries"""
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional

from models.progress_record import DIRECTION_EN_TO_TR, DIRECTION_TR_TO_EN, ProgressRecord
from services.date_utils import utc_now


@dataclass(frozen=True)
class SessionWordEntry:
    """A word bound to a direction for one session"""
    progress_id: int
    word_id: int
    direction: str
    english: str
    turkish: str
    category: str
    example_sentence: Optional[str] = None
    leitner_box: int = 0
    times_asked: int = 0
    times_correct: int = 0
    is_retry_attempt: bool = False
    retry_count: int = 0

    @classmethod
    def from_progress(cls, record: ProgressRecord) -> 'SessionWordEntry':
        word = record.word
        return cls(
            progress_id=record.id,
            word_id=record.word_id,
            direction=record.direction,
            english=word.english,
            turkish=word.turkish,
            category=word.category,
            example_sentence=word.example_sentence,
            leitner_box=record.leitner_box,
            times_asked=record.times_asked or 0,
            times_correct=record.times_correct or 0,
        )

    @property
    def is_new(self) -> bool:
        return self.leitner_box == 0

    @property
    def is_verb(self) -> bool:
        return self.category == 'verb'

    @property
    def question(self) -> str:
        return self.english if self.direction == DIRECTION_EN_TO_TR else self.turkish

    @property
    def expected_answer(self) -> str:
        return self.turkish if self.direction == DIRECTION_EN_TO_TR else self.english

    @property
    def is_verb_reversed(self) -> bool:
        # English verbs are answered with an optional "to " prefix
        return self.is_verb and self.direction == DIRECTION_TR_TO_EN

    def as_retry(self) -> 'SessionWordEntry':
        """Clone for a delayed re-ask later in the session."""
        return replace(self, is_retry_attempt=True, retry_count=self.retry_count + 1)


class SessionQueue:
    """Ordered, index-addressable queue of session entries with a cursor"""

    def __init__(self, entries: Optional[List[SessionWordEntry]] = None):
        self._entries: List[SessionWordEntry] = list(entries or [])
        self.cursor = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> SessionWordEntry:
        return self._entries[index]

    @property
    def current(self) -> Optional[SessionWordEntry]:
        if 0 <= self.cursor < len(self._entries):
            return self._entries[self.cursor]
        return None

    @property
    def is_finished(self) -> bool:
        return self.cursor >= len(self._entries)

    def advance(self) -> None:
        self.cursor += 1

    def insert_at(self, index: int, entry: SessionWordEntry) -> int:
        """Insert an entry, clamping the index to the end of the queue."""
        index = max(0, min(index, len(self._entries)))
        self._entries.insert(index, entry)
        return index

    def schedule_retry(self, entry: SessionWordEntry, offset: int) -> int:
        """Place a retry clone `offset` positions ahead of the cursor, or at the end."""
        return self.insert_at(self.cursor + offset, entry.as_retry())


@dataclass
class AnswerRecord:
    progress_id: int
    word_id: int
    direction: str
    is_correct: bool
    user_answer: str
    correct_answer: str
    was_new: bool


@dataclass
class ActiveSession:
    """A session in flight, owned by the session repository"""
    session_id: str
    user_id: int
    session_type: str
    category_filter: str
    queue: SessionQueue
    results: List[AnswerRecord] = field(default_factory=list)
    stars_earned: int = 0
    started_at: datetime = field(default_factory=utc_now)
    last_activity_at: datetime = field(default_factory=utc_now)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)
    closed: bool = False

    @property
    def words_asked(self) -> int:
        return len(self.results)

    @property
    def words_correct(self) -> int:
        return sum(1 for result in self.results if result.is_correct)

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_activity_at = now or utc_now()

