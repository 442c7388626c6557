"""Settings Service - Loads the typed training settings from the settings table"""
import json
import logging
from typing import Any, Dict, Optional

from flask import current_app, has_app_context
from pydantic import ValidationError

from models import db
from models.setting import Setting
from services.schemas import TrainingSettings

logger = logging.getLogger(__name__)

# Rows inserted when missing; stored as strings like any admin-edited value.
# timezone and inactivity_timeout_minutes are left to the app config.
DEFAULT_SETTINGS = {
    'quick_lesson_count': '5',
    'weak_words_count': '5',
    'review_mastered_count': '10',
    'mastered_review_chance': '0.1',
    'box_intervals': json.dumps({'1': 1, '2': 2, '3': 4, '4': 8, '5': 16}),
    'initial_working_set_size': '25',
    'working_set_expand_size': '5',
    'success_rate_threshold': '0.6',
    'mastery_box': '5',
}


def get_setting(key: str) -> Optional[str]:
    setting = db.session.get(Setting, key)
    return setting.value if setting else None


def set_setting(key: str, value: Any) -> Setting:
    """
    Insert or replace a single setting.

    Non-string values are stored as JSON (dicts) or str().
    """
    if not key:
        raise ValueError("Setting key is required")

    if isinstance(value, dict):
        value = json.dumps(value)
    elif not isinstance(value, str):
        value = str(value)

    try:
        setting = db.session.get(Setting, key)
        if setting:
            setting.value = value
        else:
            setting = Setting(key=key, value=value)
            db.session.add(setting)
        db.session.commit()
        logger.info(f"Setting updated: {key}={value}")
        return setting
    except Exception as e:
        logger.error(f"Failed to save setting {key}: {str(e)}", exc_info=True)
        db.session.rollback()
        raise RuntimeError(f"Failed to save setting: {str(e)}")


def seed_default_settings() -> int:
    """
    Insert the default setting rows that do not exist yet.

    Returns:
        Number of rows inserted
    """
    existing = {key for (key,) in db.session.query(Setting.key).all()}
    missing = {key: value for key, value in DEFAULT_SETTINGS.items() if key not in existing}

    for key, value in missing.items():
        db.session.add(Setting(key=key, value=value))
    db.session.commit()

    if missing:
        logger.info(f"Seeded default settings: {sorted(missing)}")
    return len(missing)


def load_training_settings(fallbacks: Optional[Dict[str, Any]] = None) -> TrainingSettings:
    """
    Build the typed settings from the settings table.

    Precedence: settings table > fallbacks > model defaults. When called inside
    a Flask app context without explicit fallbacks, the app's
    TRAINING_SETTINGS config is used.

    Raises:
        ValueError: If a stored value does not validate
    """
    if fallbacks is None and has_app_context():
        fallbacks = current_app.config.get('TRAINING_SETTINGS') or {}

    raw: Dict[str, Any] = dict(fallbacks or {})
    for setting in Setting.query.all():
        raw[setting.key] = setting.value

    try:
        settings = TrainingSettings.model_validate(raw)
    except ValidationError as e:
        logger.error(f"Invalid training settings: {e}")
        raise ValueError(f"Invalid training settings: {e}")

    logger.debug(f"Loaded training settings: {settings.model_dump()}")
    return settings
