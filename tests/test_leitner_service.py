"""
Unit tests for the Leitner scheduler.

Tests:
- Box transitions and interval gating
- Working set seeding and growth
- Word selection per session type, including the weak_words boundary
- Mixed-direction selection and backfill
"""

import sys
import os
import random
import pytest
from datetime import datetime, timedelta, timezone

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from models import db
from models.progress_record import ProgressRecord, DIRECTION_EN_TO_TR, DIRECTION_TR_TO_EN
from models.user import User
from models.word import Word
from services import leitner_service
from services.progress_service import create_progress_for_user, get_working_set_size
from services.schemas import TrainingSettings


@pytest.fixture(scope='function')
def app_context():
    """Create a fresh app context and database for each test"""
    app = create_app('testing')

    with app.app_context():
        db.create_all()

        yield app

        db.session.remove()
        db.drop_all()


@pytest.fixture
def settings():
    """Settings without random mastered refreshers"""
    return TrainingSettings(mastered_review_chance=0.0)


@pytest.fixture
def test_user(app_context):
    """Create a test learner"""
    user = User(username='deniz')
    db.session.add(user)
    db.session.commit()
    return user


def add_words(count, category='noun', prefix='word'):
    """Add `count` words of one category"""
    words = []
    for i in range(count):
        word = Word(english=f'{prefix}{i}', turkish=f'kelime_{prefix}{i}', category=category)
        db.session.add(word)
        words.append(word)
    db.session.commit()
    return words


def set_box(user_id, word_id, direction, box, last_asked=None, session_counter=0):
    record = ProgressRecord.query.filter_by(user_id=user_id, word_id=word_id, direction=direction).one()
    record.leitner_box = box
    record.last_asked = last_asked
    record.session_counter = session_counter
    db.session.commit()
    return record


class TestGetNewBox:
    """Test get_new_box function"""

    @pytest.mark.parametrize("box", [1, 2, 3, 4, 5])
    def test_correct_moves_up_capped(self, box):
        assert leitner_service.get_new_box(box, True) == min(box + 1, 5)

    @pytest.mark.parametrize("box", [1, 2, 3, 4, 5])
    def test_incorrect_resets_to_one(self, box):
        assert leitner_service.get_new_box(box, False) == 1

    def test_new_word_is_treated_as_box_one(self):
        assert leitner_service.get_new_box(0, True) == 2
        assert leitner_service.get_new_box(0, False) == 1

    def test_five_correct_answers_reach_box_five(self):
        box = 1
        for _ in range(5):
            box = leitner_service.get_new_box(box, True)
        assert box == 5

        box = leitner_service.get_new_box(box, True)
        assert box == 5


class TestIsDue:
    """Test is_due function"""

    def _record(self, box, counter):
        return ProgressRecord(
            user_id=1,
            word_id=1,
            direction=DIRECTION_EN_TO_TR,
            leitner_box=box,
            session_counter=counter
        )

    def test_box_one_always_due(self, app_context, settings):
        assert leitner_service.is_due(self._record(1, 7), settings) is True

    def test_box_zero_never_due(self, app_context, settings):
        assert leitner_service.is_due(self._record(0, 0), settings) is False

    def test_interval_gating(self, app_context, settings):
        assert leitner_service.is_due(self._record(2, 4), settings) is True
        assert leitner_service.is_due(self._record(2, 3), settings) is False
        assert leitner_service.is_due(self._record(5, 16), settings) is True
        assert leitner_service.is_due(self._record(5, 8), settings) is False

    def test_custom_intervals(self, app_context):
        settings = TrainingSettings(box_intervals={3: 3})
        assert leitner_service.is_due(self._record(3, 3), settings) is True
        assert leitner_service.is_due(self._record(3, 4), settings) is False


class TestShuffleWords:
    """Test shuffle_words function"""

    def test_is_a_permutation(self):
        items = list(range(20))
        shuffled = leitner_service.shuffle_words(items, random.Random(3))
        assert sorted(shuffled) == items

    def test_does_not_mutate_input(self):
        items = [1, 2, 3]
        leitner_service.shuffle_words(items, random.Random(1))
        assert items == [1, 2, 3]

    def test_seeded_is_deterministic(self):
        items = list(range(10))
        assert leitner_service.shuffle_words(items, random.Random(42)) == \
            leitner_service.shuffle_words(items, random.Random(42))


class TestWorkingSet:
    """Test working set seeding and expansion"""

    def test_seeds_empty_working_set(self, app_context, test_user, settings):
        add_words(30)
        create_progress_for_user(test_user.id)

        added = leitner_service.ensure_working_set(test_user.id, settings, random.Random(1))

        assert added == 25
        assert get_working_set_size(test_user.id) == 25
        # Both directions are promoted together
        assert ProgressRecord.query.filter_by(user_id=test_user.id, leitner_box=1).count() == 50

    def test_seeding_stamps_first_learned(self, app_context, test_user, settings):
        add_words(3)
        create_progress_for_user(test_user.id)

        leitner_service.ensure_working_set(test_user.id, settings, random.Random(1))

        records = ProgressRecord.query.filter_by(user_id=test_user.id).all()
        assert all(record.first_learned is not None for record in records)

    def test_expands_when_success_rate_high(self, app_context, test_user, settings):
        words = add_words(10)
        create_progress_for_user(test_user.id)
        record = set_box(test_user.id, words[0].id, DIRECTION_EN_TO_TR, 2)
        record.times_asked = 10
        record.times_correct = 8
        db.session.commit()

        should_expand, reason = leitner_service.should_expand_working_set(test_user.id, settings)
        assert should_expand is True
        assert reason == leitner_service.EXPAND_REASON_SUCCESS_RATE

        added = leitner_service.ensure_working_set(test_user.id, settings, random.Random(1))
        assert added == 5

    def test_does_not_expand_when_success_rate_low(self, app_context, test_user, settings):
        words = add_words(10)
        create_progress_for_user(test_user.id)
        record = set_box(test_user.id, words[0].id, DIRECTION_EN_TO_TR, 1)
        record.times_asked = 10
        record.times_correct = 3
        db.session.commit()

        should_expand, reason = leitner_service.should_expand_working_set(test_user.id, settings)
        assert should_expand is False
        assert reason == leitner_service.EXPAND_REASON_LOW_SUCCESS_RATE
        assert leitner_service.ensure_working_set(test_user.id, settings) == 0

    def test_nothing_to_add_when_all_started(self, app_context, test_user, settings):
        words = add_words(2)
        create_progress_for_user(test_user.id)
        for word in words:
            set_box(test_user.id, word.id, DIRECTION_EN_TO_TR, 1)
            set_box(test_user.id, word.id, DIRECTION_TR_TO_EN, 1)

        assert leitner_service.expand_working_set(test_user.id, 5) == 0


class TestSelectWords:
    """Test select_words per session type"""

    def test_weak_words_never_falls_back_to_new_words(self, app_context, test_user, settings):
        add_words(5)
        create_progress_for_user(test_user.id)

        for direction in (DIRECTION_EN_TO_TR, DIRECTION_TR_TO_EN):
            selected = leitner_service.select_words(
                test_user.id, 'weak_words', 'all', 5, direction, settings, random.Random(1)
            )
            assert selected == []

        mixed = leitner_service.select_words_mixed(
            test_user.id, 'weak_words', 'all', 5, settings, random.Random(1)
        )
        assert mixed == []
        # weak_words does not grow the working set either
        assert get_working_set_size(test_user.id) == 0

    def test_weak_words_picks_recent_low_box_words(self, app_context, test_user, settings):
        words = add_words(4)
        create_progress_for_user(test_user.id)
        now = datetime.now(timezone.utc)
        set_box(test_user.id, words[0].id, DIRECTION_EN_TO_TR, 1, last_asked=now)
        set_box(test_user.id, words[1].id, DIRECTION_EN_TO_TR, 2, last_asked=now - timedelta(hours=1))
        set_box(test_user.id, words[2].id, DIRECTION_EN_TO_TR, 4, last_asked=now, session_counter=1)

        selected = leitner_service.select_words(
            test_user.id, 'weak_words', 'all', 5, DIRECTION_EN_TO_TR, settings, random.Random(1)
        )

        assert {record.word_id for record in selected} == {words[0].id, words[1].id}

    def test_review_mastered_only_boxes_three_to_five(self, app_context, test_user, settings):
        words = add_words(6)
        create_progress_for_user(test_user.id)
        for box, word in zip([1, 2, 3, 4, 5, 0], words):
            set_box(test_user.id, word.id, DIRECTION_EN_TO_TR, box)

        selected = leitner_service.select_words(
            test_user.id, 'review_mastered', 'all', 10, DIRECTION_EN_TO_TR, settings, random.Random(1)
        )

        assert sorted(record.leitner_box for record in selected) == [3, 4, 5]

    def test_quick_prefers_due_then_new_words(self, app_context, test_user, settings):
        words = add_words(4)
        create_progress_for_user(test_user.id)
        set_box(test_user.id, words[0].id, DIRECTION_EN_TO_TR, 1)

        selected = leitner_service.select_words(
            test_user.id, 'quick', 'all', 3, DIRECTION_EN_TO_TR, settings, random.Random(1)
        )

        assert len(selected) == 3
        assert words[0].id in {record.word_id for record in selected}
        assert len({record.id for record in selected}) == 3

    def test_mastered_refresher_added(self, app_context, test_user):
        words = add_words(2)
        create_progress_for_user(test_user.id)
        set_box(test_user.id, words[0].id, DIRECTION_EN_TO_TR, 1)
        set_box(test_user.id, words[1].id, DIRECTION_EN_TO_TR, 5, session_counter=3)
        set_box(test_user.id, words[1].id, DIRECTION_TR_TO_EN, 5, session_counter=3)

        always = TrainingSettings(mastered_review_chance=1.0)
        selected = leitner_service.select_words(
            test_user.id, 'quick', 'all', 1, DIRECTION_EN_TO_TR, always, random.Random(1)
        )
        assert {record.word_id for record in selected} == {words[0].id, words[1].id}

        never = TrainingSettings(mastered_review_chance=0.0)
        selected = leitner_service.select_words(
            test_user.id, 'quick', 'all', 1, DIRECTION_EN_TO_TR, never, random.Random(1)
        )
        assert [record.word_id for record in selected] == [words[0].id]

    def test_zero_target(self, app_context, test_user, settings):
        assert leitner_service.select_words(
            test_user.id, 'quick', 'all', 0, DIRECTION_EN_TO_TR, settings
        ) == []


class TestSelectWordsMixed:
    """Test select_words_mixed function"""

    def test_quick_session_seeds_and_fills_target(self, app_context, test_user, settings):
        add_words(30)
        create_progress_for_user(test_user.id)

        selected = leitner_service.select_words_mixed(
            test_user.id, 'quick', 'all', 5, settings, random.Random(7)
        )

        assert len(selected) == 5
        assert len({(record.word_id, record.direction) for record in selected}) == 5
        assert {record.direction for record in selected} == {DIRECTION_EN_TO_TR, DIRECTION_TR_TO_EN}
        assert get_working_set_size(test_user.id) == 25

    def test_backfills_short_direction(self, app_context, test_user, settings):
        words = add_words(3)
        create_progress_for_user(test_user.id)
        for word in words:
            set_box(test_user.id, word.id, DIRECTION_EN_TO_TR, 3)
            set_box(test_user.id, word.id, DIRECTION_TR_TO_EN, 1)

        selected = leitner_service.select_words_mixed(
            test_user.id, 'review_mastered', 'all', 4, settings, random.Random(2)
        )

        assert len(selected) == 3
        assert all(record.direction == DIRECTION_EN_TO_TR for record in selected)
        assert len({record.id for record in selected}) == 3

    def test_category_filter(self, app_context, test_user, settings):
        add_words(10, category='noun', prefix='noun')
        verbs = add_words(3, category='verb', prefix='verb')
        create_progress_for_user(test_user.id)

        selected = leitner_service.select_words_mixed(
            test_user.id, 'category', 'verb', 5, settings, random.Random(5)
        )

        assert len(selected) == 5
        assert {record.word_id for record in selected} <= {verb.id for verb in verbs}


class TestProgressStats:
    """Test progress statistics"""

    def test_all_words_mastered(self, app_context, test_user, settings):
        words = add_words(2)
        create_progress_for_user(test_user.id)
        assert leitner_service.are_all_words_mastered(test_user.id, settings) is False

        for word in words:
            set_box(test_user.id, word.id, DIRECTION_EN_TO_TR, 5)
            set_box(test_user.id, word.id, DIRECTION_TR_TO_EN, 5)

        assert leitner_service.are_all_words_mastered(test_user.id, settings) is True

    def test_one_direction_is_not_mastery(self, app_context, test_user, settings):
        words = add_words(1)
        create_progress_for_user(test_user.id)
        set_box(test_user.id, words[0].id, DIRECTION_EN_TO_TR, 5)

        stats = leitner_service.get_progress_stats(test_user.id, settings)

        assert stats['fully_mastered'] == 0
        assert stats['total_words'] == 1
        assert stats['by_direction'][DIRECTION_EN_TO_TR][5] == 1
        assert stats['by_direction'][DIRECTION_TR_TO_EN][0] == 1

    def test_no_words_is_not_all_mastered(self, app_context, test_user, settings):
        assert leitner_service.are_all_words_mastered(test_user.id, settings) is False
        assert leitner_service.get_review_word_count(test_user.id) == 0
