"""
Training Session Service - Runs drill sessions from word selection to summary.

A session is created with a queue of direction-bound words chosen by the
Leitner scheduler, consumed one answer at a time, and closed either by
`end_session` (stats, streak, achievements) or by `abandon_session`.

In-flight sessions live in a SessionRepository; the TrainingSession table
only mirrors their running tally. Every public method returns a pydantic
result model; expected failures come back as SessionError values.
"""

import logging
import random
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

from flask import current_app

from models import db
from models.training_session import (
    STATUS_ABANDONED,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    TrainingSession,
    VALID_SESSION_TYPES,
)
from services import achievement_service, answer_matcher, leitner_service, progress_service
from services.date_utils import as_naive_utc, today_in, utc_now
from services.learner_stats_service import record_daily_activity, update_learner_stats
from services.schemas import (
    ErrorCode,
    PresentedWord,
    SaveResult,
    SessionError,
    SessionState,
    SessionSummary,
    StartResult,
    SubmitResult,
    TrainingSettings,
    Verdict,
    WordStats,
)
from services.session_queue import ActiveSession, AnswerRecord, SessionQueue, SessionWordEntry
from services.session_repository import InMemorySessionRepository, SessionRepository
from services.settings_service import load_training_settings

logger = logging.getLogger(__name__)

CORRECT_MESSAGE = "Correct! ⭐"
EXTENSION_KEY = 'training_service'


class TrainingSessionService:
    """Session engine bound to one set of training settings"""

    def __init__(
        self,
        settings: Optional[TrainingSettings] = None,
        repository: Optional[SessionRepository] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Args:
            settings: Training settings (defaults when None)
            repository: Storage for in-flight sessions (in-memory when None)
            rng: Randomness source for word selection (seedable for tests)
            clock: Returns the current UTC time
        """
        self.settings = settings or TrainingSettings()
        self.repository = repository or InMemorySessionRepository()
        self.rng = rng or random.Random()
        self.clock = clock or utc_now

    # Lifecycle

    def start_session(
        self,
        user_id: int,
        session_type: str,
        category_filter: Optional[str] = progress_service.ALL_CATEGORIES
    ) -> Union[StartResult, SessionError]:
        """
        Select words and open a new session.

        Args:
            user_id: The ID of the user
            session_type: quick, weak_words, review_mastered or category
            category_filter: Word category for category sessions ('all' otherwise)

        Returns:
            StartResult with the first word, or SessionError with
            invalid_session_type / no_words_available

        Raises:
            RuntimeError: If the session header cannot be stored
        """
        if session_type not in VALID_SESSION_TYPES:
            logger.warning(f"Rejected session start with invalid type '{session_type}' for user_id={user_id}")
            return SessionError(
                error=ErrorCode.INVALID_SESSION_TYPE,
                message=f"Invalid session type: {session_type}. Must be one of: {VALID_SESSION_TYPES}"
            )

        category_filter = category_filter or progress_service.ALL_CATEGORIES
        target_count = self.settings.target_count_for(session_type)

        records = leitner_service.select_words_mixed(
            user_id, session_type, category_filter, target_count, self.settings, self.rng
        )

        if not records:
            vocabulary_empty = progress_service.count_words(user_id) == 0
            all_mastered = leitner_service.are_all_words_mastered(user_id, self.settings)
            logger.info(
                f"No words available for user_id={user_id}, session_type={session_type}, "
                f"all_mastered={all_mastered}, vocabulary_empty={vocabulary_empty}"
            )
            return SessionError(
                error=ErrorCode.NO_WORDS_AVAILABLE,
                message="No words available for this session type",
                all_mastered=all_mastered,
                vocabulary_empty=vocabulary_empty
            )

        now = self.clock()
        session_id = str(uuid.uuid4())

        try:
            db.session.add(TrainingSession(
                session_id=session_id,
                user_id=user_id,
                session_type=session_type,
                category_filter=category_filter,
                status=STATUS_IN_PROGRESS,
                started_at=now
            ))
            db.session.commit()
        except Exception as e:
            logger.error(f"Failed to create session header for user_id={user_id}: {str(e)}", exc_info=True)
            db.session.rollback()
            raise RuntimeError(f"Failed to create training session: {str(e)}")

        session = ActiveSession(
            session_id=session_id,
            user_id=user_id,
            session_type=session_type,
            category_filter=category_filter,
            queue=SessionQueue([SessionWordEntry.from_progress(record) for record in records]),
            started_at=now,
            last_activity_at=now
        )
        self.repository.put(session)

        logger.info(
            f"Started {session_type} session {session_id} for user_id={user_id} "
            f"with {len(session.queue)} words"
        )

        return StartResult(
            session_id=session_id,
            session_type=session_type,
            total_words=len(session.queue),
            current_word=self._present_word(session)
        )

    def submit_answer(
        self,
        user_id: int,
        session_id: str,
        answer: Optional[str],
        is_retry: bool = False
    ) -> Union[SubmitResult, SessionError]:
        """
        Check an answer against the current word and move the session on.

        An 'almost' answer on a first submission returns allow_retry=True and
        changes nothing; the resubmission (is_retry=True) must match exactly.
        A resolving answer on a first-time entry updates the word's progress
        and the session tally. A wrong answer re-queues the word a few
        positions ahead, at most max_delayed_retries times per word. Re-queued
        entries never touch progress or the tally.

        Args:
            user_id: The ID of the user
            session_id: The session UUID
            answer: What the learner typed
            is_retry: True for the resubmission after an 'almost' verdict

        Returns:
            SubmitResult, or SessionError with session_not_found / no_current_word
        """
        session = self.repository.get(user_id, session_id)
        if not session:
            return self._not_found(user_id, session_id)

        with session.lock:
            # Ended or abandoned while this call waited for the lock
            if session.closed:
                return self._not_found(user_id, session_id)

            entry = session.queue.current
            if entry is None:
                logger.error(f"Answer submitted to session {session_id} with no current word")
                return SessionError(
                    error=ErrorCode.NO_CURRENT_WORD,
                    message="No current word"
                )

            now = self.clock()
            session.touch(now)

            match = answer_matcher.evaluate(
                answer,
                entry.expected_answer,
                is_verb_reversed=entry.is_verb_reversed,
                almost_threshold=self.settings.almost_accuracy_threshold
            )

            if match.verdict == Verdict.ALMOST and not is_retry:
                return SubmitResult(
                    result=Verdict.ALMOST,
                    message=match.message,
                    allow_retry=True,
                    accuracy=match.accuracy,
                    is_retry_attempt=entry.is_retry_attempt,
                    stars_earned=session.stars_earned
                )

            is_correct = match.verdict == Verdict.CORRECT

            new_box = None
            if not entry.is_retry_attempt:
                new_box = self._record_answer(session, entry, answer, is_correct, now)

            requeued = False
            if not is_correct and entry.retry_count < self.settings.max_delayed_retries:
                position = session.queue.schedule_retry(entry, self.settings.retry_offset)
                requeued = True
                logger.debug(
                    f"Re-queued word_id={entry.word_id} ({entry.direction}) at position {position}, "
                    f"retry {entry.retry_count + 1}"
                )

            session.queue.advance()
            is_complete = session.queue.is_finished

            return SubmitResult(
                result=Verdict.CORRECT if is_correct else Verdict.INCORRECT,
                message=CORRECT_MESSAGE if is_correct else None,
                accuracy=match.accuracy,
                correct_answer=entry.expected_answer,
                new_leitner_box=new_box,
                is_retry_attempt=entry.is_retry_attempt,
                requeued=requeued,
                char_alignment=None if is_correct else answer_matcher.align_characters(
                    answer, entry.expected_answer
                ),
                stars_earned=session.stars_earned,
                is_complete=is_complete,
                next_word=None if is_complete else self._present_word(session)
            )

    def end_session(self, user_id: int, session_id: str) -> Union[SessionSummary, SessionError]:
        """
        Close a session and roll its results into the learner's history.

        Steps:
        1. Close the session header with the final tally
        2. Count the session and its stars in today's activity
        3. Add stars and advance the day streak
        4. Grant newly reached achievements
        5. Drop the in-memory session

        Returns:
            SessionSummary (accuracy is 0 when nothing was asked), or
            SessionError with session_not_found
        """
        session = self.repository.get(user_id, session_id)
        if not session:
            return self._not_found(user_id, session_id)

        with session.lock:
            if session.closed:
                return self._not_found(user_id, session_id)

            now = self.clock()
            today = today_in(self.settings.timezone, now)

            words_asked = session.words_asked
            words_correct = session.words_correct
            stars_earned = session.stars_earned
            accuracy = answer_matcher.round_half_up(words_correct / words_asked * 100) if words_asked > 0 else 0

            self._persist_tally(session, status=STATUS_COMPLETED, ended_at=now)
            record_daily_activity(user_id, today, sessions_completed=1, stars_earned=stars_earned)
            update_learner_stats(user_id, today, stars_earned)
            new_achievements = achievement_service.check_achievements(user_id, self.settings)

            session.closed = True
            self.repository.delete(user_id, session_id)

        logger.info(
            f"Ended session {session_id} for user_id={user_id}: "
            f"{words_correct}/{words_asked} correct, {stars_earned} stars"
        )

        return SessionSummary(
            session_id=session_id,
            words_asked=words_asked,
            words_correct=words_correct,
            accuracy=accuracy,
            stars_earned=stars_earned,
            new_achievements=new_achievements,
            all_mastered=leitner_service.are_all_words_mastered(user_id, self.settings)
        )

    # Recovery

    def get_session_state(self, user_id: int, session_id: str) -> Union[SessionState, SessionError]:
        """Snapshot of a running session, including the word to show next."""
        session = self.repository.get(user_id, session_id)
        if not session:
            return self._not_found(user_id, session_id)

        with session.lock:
            if session.closed:
                return self._not_found(user_id, session_id)

            is_complete = session.queue.is_finished
            return SessionState(
                session_id=session.session_id,
                session_type=session.session_type,
                total_words=len(session.queue),
                current_index=session.queue.cursor,
                words_asked=session.words_asked,
                words_correct=session.words_correct,
                stars_earned=session.stars_earned,
                is_complete=is_complete,
                current_word=None if is_complete else self._present_word(session)
            )

    def save_progress(self, user_id: int, session_id: str) -> Union[SaveResult, SessionError]:
        """Persist the running tally without closing the session. Counts as activity."""
        session = self.repository.get(user_id, session_id)
        if not session:
            return self._not_found(user_id, session_id)

        with session.lock:
            if session.closed:
                return self._not_found(user_id, session_id)

            session.touch(self.clock())
            self._persist_tally(session, status=STATUS_IN_PROGRESS)
            return self._save_result(session, STATUS_IN_PROGRESS)

    def abandon_session(self, user_id: int, session_id: str) -> Union[SaveResult, SessionError]:
        """
        Close a session without completion.

        The tally is persisted and the header marked abandoned. Learner stats,
        daily activity and achievements are left as they are; progress already
        committed per answer is kept.
        """
        session = self.repository.get(user_id, session_id)
        if not session:
            return self._not_found(user_id, session_id)

        with session.lock:
            if session.closed:
                return self._not_found(user_id, session_id)

            self._persist_tally(session, status=STATUS_ABANDONED, ended_at=self.clock())
            session.closed = True
            self.repository.delete(user_id, session_id)

        logger.info(f"Abandoned session {session_id} for user_id={user_id}")
        return self._save_result(session, STATUS_ABANDONED)

    def sweep_inactive_sessions(self, now: Optional[datetime] = None) -> List[str]:
        """
        Abandon every in-memory session idle longer than the inactivity timeout.

        Returns:
            IDs of the abandoned sessions
        """
        now = as_naive_utc(now or self.clock())
        cutoff = now - timedelta(minutes=self.settings.inactivity_timeout_minutes)

        swept = []
        for session in self.repository.all():
            if as_naive_utc(session.last_activity_at) < cutoff:
                result = self.abandon_session(session.user_id, session.session_id)
                if isinstance(result, SaveResult):
                    swept.append(session.session_id)

        if swept:
            logger.info(f"Swept {len(swept)} inactive sessions")
        return swept

    # Internals

    def _record_answer(self, session: ActiveSession, entry: SessionWordEntry,
                       answer: Optional[str], is_correct: bool, now: datetime) -> int:
        new_box = leitner_service.get_new_box(entry.leitner_box, is_correct)

        session.results.append(AnswerRecord(
            progress_id=entry.progress_id,
            word_id=entry.word_id,
            direction=entry.direction,
            is_correct=is_correct,
            user_answer=answer or '',
            correct_answer=entry.expected_answer,
            was_new=entry.is_new
        ))
        if is_correct:
            session.stars_earned += 1

        progress_service.update_after_answer(entry.progress_id, new_box, is_correct, now)

        if entry.is_new:
            record_daily_activity(
                session.user_id,
                today_in(self.settings.timezone, now),
                words_introduced=1
            )

        self._persist_tally(session, status=STATUS_IN_PROGRESS)
        return new_box

    def _persist_tally(self, session: ActiveSession, status: str,
                       ended_at: Optional[datetime] = None) -> None:
        try:
            header = db.session.get(TrainingSession, session.session_id)
            if header is None:
                logger.warning(f"Session header {session.session_id} missing, skipping tally update")
                return

            header.words_asked = session.words_asked
            header.words_correct = session.words_correct
            header.stars_earned = session.stars_earned
            header.status = status
            if ended_at is not None:
                header.ended_at = ended_at

            db.session.commit()

        except Exception as e:
            logger.error(f"Failed to persist tally for session {session.session_id}: {str(e)}", exc_info=True)
            db.session.rollback()
            raise RuntimeError(f"Failed to persist session tally: {str(e)}")

    def _present_word(self, session: ActiveSession) -> Optional[PresentedWord]:
        entry = session.queue.current
        if entry is None:
            return None

        return PresentedWord(
            index=session.queue.cursor,
            total=len(session.queue),
            direction=entry.direction,
            word_id=entry.word_id,
            question=entry.question,
            answer_hint=answer_matcher.generate_answer_hint(entry.expected_answer),
            example_sentence=answer_matcher.process_example_sentence(entry.example_sentence, entry.direction),
            category=entry.category,
            is_verb=entry.is_verb,
            is_retry_attempt=entry.is_retry_attempt,
            stats=WordStats(
                times_asked=entry.times_asked,
                times_correct=entry.times_correct,
                leitner_box=entry.leitner_box,
                is_new=entry.is_new
            )
        )

    @staticmethod
    def _save_result(session: ActiveSession, status: str) -> SaveResult:
        return SaveResult(
            session_id=session.session_id,
            status=status,
            words_asked=session.words_asked,
            words_correct=session.words_correct,
            stars_earned=session.stars_earned
        )

    @staticmethod
    def _not_found(user_id: int, session_id: str) -> SessionError:
        logger.warning(f"Session not found: user_id={user_id}, session_id={session_id}")
        return SessionError(
            error=ErrorCode.SESSION_NOT_FOUND,
            message="Session not found"
        )


def abandon_orphaned_sessions(now: Optional[datetime] = None) -> int:
    """
    Close every session header still marked in progress.

    Run at startup: a restart loses the in-memory queues, so these sessions
    can never be completed.

    Returns:
        Number of sessions marked abandoned
    """
    now = now or utc_now()
    try:
        orphaned = TrainingSession.query.filter_by(status=STATUS_IN_PROGRESS).all()
        for header in orphaned:
            header.status = STATUS_ABANDONED
            header.ended_at = now
        db.session.commit()
    except Exception as e:
        logger.error(f"Failed to abandon orphaned sessions: {str(e)}", exc_info=True)
        db.session.rollback()
        raise RuntimeError(f"Failed to abandon orphaned sessions: {str(e)}")

    if orphaned:
        logger.info(f"Abandoned {len(orphaned)} orphaned training sessions")
    return len(orphaned)


def get_training_service() -> TrainingSessionService:
    """
    The session engine of the current Flask app.

    Built on first use from the stored training settings and kept in
    app.extensions so every request shares one session repository.
    """
    service = current_app.extensions.get(EXTENSION_KEY)
    if service is None:
        service = TrainingSessionService(load_training_settings())
        current_app.extensions[EXTENSION_KEY] = service
    return service
