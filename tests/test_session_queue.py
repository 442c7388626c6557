"""
Unit tests for the in-memory session queue and repository.
"""

import sys
import os
import threading
import pytest
from datetime import datetime, timezone

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.session_queue import ActiveSession, AnswerRecord, SessionQueue, SessionWordEntry
from services.session_repository import InMemorySessionRepository


def make_entry(word_id, direction='en_to_tr', category='noun', leitner_box=1):
    return SessionWordEntry(
        progress_id=word_id * 10,
        word_id=word_id,
        direction=direction,
        english=f'to word{word_id}' if category == 'verb' else f'word{word_id}',
        turkish=f'kelime{word_id}',
        category=category,
        leitner_box=leitner_box
    )


def make_session(session_id='s-1', user_id=1, entries=None):
    return ActiveSession(
        session_id=session_id,
        user_id=user_id,
        session_type='quick',
        category_filter='all',
        queue=SessionQueue(entries or [make_entry(1)])
    )


class TestSessionWordEntry:
    """Test SessionWordEntry properties"""

    def test_question_and_answer_follow_direction(self):
        forward = make_entry(1, direction='en_to_tr')
        reverse = make_entry(1, direction='tr_to_en')

        assert (forward.question, forward.expected_answer) == ('word1', 'kelime1')
        assert (reverse.question, reverse.expected_answer) == ('kelime1', 'word1')

    def test_verb_reversed_only_towards_english(self):
        assert make_entry(1, direction='tr_to_en', category='verb').is_verb_reversed is True
        assert make_entry(1, direction='en_to_tr', category='verb').is_verb_reversed is False
        assert make_entry(1, direction='tr_to_en', category='noun').is_verb_reversed is False

    def test_is_new(self):
        assert make_entry(1, leitner_box=0).is_new is True
        assert make_entry(1, leitner_box=3).is_new is False

    def test_as_retry_counts_up(self):
        entry = make_entry(1)
        retry = entry.as_retry().as_retry()

        assert retry.is_retry_attempt is True
        assert retry.retry_count == 2
        assert entry.retry_count == 0
        assert retry.progress_id == entry.progress_id


class TestSessionQueue:
    """Test SessionQueue cursor and insertion"""

    def test_advance_to_finish(self):
        queue = SessionQueue([make_entry(1), make_entry(2)])

        assert queue.current.word_id == 1
        queue.advance()
        assert queue.current.word_id == 2
        queue.advance()
        assert queue.current is None
        assert queue.is_finished is True

    def test_empty_queue_is_finished(self):
        assert SessionQueue().is_finished is True

    def test_retry_lands_offset_ahead(self):
        queue = SessionQueue([make_entry(i) for i in range(1, 8)])

        position = queue.schedule_retry(queue.current, 4)

        assert position == 4
        assert queue[4].word_id == 1
        assert queue[4].is_retry_attempt is True
        assert len(queue) == 8

    def test_retry_near_end_goes_last(self):
        queue = SessionQueue([make_entry(1), make_entry(2)])
        queue.advance()

        position = queue.schedule_retry(queue.current, 4)

        assert position == 2
        assert queue[len(queue) - 1].word_id == 2

    def test_insert_at_clamps(self):
        queue = SessionQueue([make_entry(1)])
        assert queue.insert_at(-3, make_entry(2)) == 0
        assert queue.insert_at(100, make_entry(3)) == 2


class TestActiveSession:
    """Test ActiveSession tally"""

    def test_tally_from_results(self):
        session = make_session()
        session.results.append(AnswerRecord(10, 1, 'en_to_tr', True, 'kelime1', 'kelime1', False))
        session.results.append(AnswerRecord(20, 2, 'en_to_tr', False, 'x', 'kelime2', True))

        assert session.words_asked == 2
        assert session.words_correct == 1

    def test_touch(self):
        session = make_session()
        moment = datetime(2025, 5, 1, tzinfo=timezone.utc)
        session.touch(moment)
        assert session.last_activity_at == moment


class TestInMemorySessionRepository:
    """Test InMemorySessionRepository"""

    def test_put_get_delete(self):
        repository = InMemorySessionRepository()
        session = make_session()

        repository.put(session)

        assert repository.get(1, 's-1') is session
        assert len(repository) == 1
        assert repository.delete(1, 's-1') is True
        assert repository.get(1, 's-1') is None
        assert repository.delete(1, 's-1') is False

    def test_keyed_by_user(self):
        repository = InMemorySessionRepository()
        repository.put(make_session(user_id=1))

        assert repository.get(2, 's-1') is None

    def test_concurrent_puts(self):
        repository = InMemorySessionRepository()
        threads = [
            threading.Thread(target=repository.put, args=(make_session(session_id=f's-{i}'),))
            for i in range(50)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(repository.all()) == 50
