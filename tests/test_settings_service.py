"""
Unit tests for settings service and the typed training settings.
"""

import sys
import os
import pytest
from pydantic import ValidationError

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from models import db
from models.setting import Setting
from services.schemas import TrainingSettings
from services.schemas.settings_models import DEFAULT_BOX_INTERVALS
from services.settings_service import (
    DEFAULT_SETTINGS,
    get_setting,
    load_training_settings,
    seed_default_settings,
    set_setting,
)


@pytest.fixture(scope='function')
def app_context():
    """Create a fresh app context and database for each test"""
    app = create_app('testing')

    with app.app_context():
        db.create_all()

        yield app

        db.session.remove()
        db.drop_all()


class TestTrainingSettings:
    """Test TrainingSettings model"""

    def test_defaults(self):
        settings = TrainingSettings()

        assert settings.quick_lesson_count == 5
        assert settings.weak_words_count == 5
        assert settings.review_mastered_count == 10
        assert settings.mastered_review_chance == 0.1
        assert settings.box_intervals == DEFAULT_BOX_INTERVALS
        assert settings.initial_working_set_size == 25
        assert settings.success_rate_threshold == 0.6
        assert settings.mastery_box == 5
        assert settings.retry_offset == 4
        assert settings.max_delayed_retries == 2

    def test_coerces_strings(self):
        settings = TrainingSettings.model_validate({
            'quick_lesson_count': '8',
            'mastered_review_chance': '0.25',
            'box_intervals': '{"2": 3}',
        })

        assert settings.quick_lesson_count == 8
        assert settings.mastered_review_chance == 0.25
        assert settings.box_intervals[2] == 3
        assert settings.box_intervals[5] == 16

    def test_target_counts(self):
        settings = TrainingSettings(quick_lesson_count=6, weak_words_count=4)

        assert settings.target_count_for('quick') == 6
        assert settings.target_count_for('weak_words') == 4
        assert settings.target_count_for('review_mastered') == 10
        assert settings.target_count_for('category') == 6
        assert TrainingSettings(category_lesson_count=3).target_count_for('category') == 3

    @pytest.mark.parametrize("values", [
        {'mastered_review_chance': 1.5},
        {'box_intervals': {7: 2}},
        {'box_intervals': {2: 0}},
        {'box_intervals': 'not json'},
        {'timezone': 'Mars/Olympus'},
        {'mastery_box': 0},
    ])
    def test_rejects_invalid_values(self, values):
        with pytest.raises(ValidationError):
            TrainingSettings(**values)

    def test_is_frozen(self):
        with pytest.raises(ValidationError):
            TrainingSettings().quick_lesson_count = 9


class TestSettingsService:
    """Test settings table access"""

    def test_seed_is_idempotent(self, app_context):
        assert seed_default_settings() == len(DEFAULT_SETTINGS)
        assert seed_default_settings() == 0
        assert get_setting('quick_lesson_count') == '5'

    def test_seed_keeps_existing_values(self, app_context):
        set_setting('quick_lesson_count', 12)
        seed_default_settings()
        assert get_setting('quick_lesson_count') == '12'

    def test_set_setting_serializes(self, app_context):
        set_setting('box_intervals', {'3': 5})
        assert db.session.get(Setting, 'box_intervals').value == '{"3": 5}'

    def test_set_setting_requires_key(self, app_context):
        with pytest.raises(ValueError):
            set_setting('', 'x')

    def test_table_overrides_config(self, app_context):
        app_context.config['TRAINING_SETTINGS'] = {'timezone': 'UTC', 'quick_lesson_count': 3}
        set_setting('quick_lesson_count', 7)

        settings = load_training_settings()

        assert settings.quick_lesson_count == 7
        assert settings.timezone == 'UTC'

    def test_seed_leaves_config_values_in_charge(self, app_context):
        app_context.config['TRAINING_SETTINGS'] = {'timezone': 'UTC', 'inactivity_timeout_minutes': 30}

        seed_default_settings()
        settings = load_training_settings()

        assert get_setting('timezone') is None
        assert settings.timezone == 'UTC'
        assert settings.inactivity_timeout_minutes == 30

    def test_explicit_fallbacks(self, app_context):
        settings = load_training_settings({'weak_words_count': 2})
        assert settings.weak_words_count == 2

    def test_invalid_stored_value(self, app_context):
        set_setting('mastery_box', 'seven')
        with pytest.raises(ValueError):
            load_training_settings()
