"""
Settings Pydantic Model

Typed view of the tunables stored in the settings table. Values arrive as
strings and are coerced and validated here once, at startup.
"""

import json
from typing import Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Review cadence per box: a word in box b is due every N-th time it comes up
DEFAULT_BOX_INTERVALS = {
    1: 1,
    2: 2,
    3: 4,
    4: 8,
    5: 16,
}


class TrainingSettings(BaseModel):
    """Scheduler and session engine tunables with explicit defaults"""

    model_config = ConfigDict(frozen=True, extra='ignore')

    # Session sizes
    quick_lesson_count: int = Field(default=5, ge=1)
    weak_words_count: int = Field(default=5, ge=1)
    review_mastered_count: int = Field(default=10, ge=1)
    category_lesson_count: Optional[int] = Field(
        default=None,
        ge=1,
        description="Falls back to quick_lesson_count when unset"
    )

    # Scheduler
    mastered_review_chance: float = Field(default=0.1, ge=0.0, le=1.0)
    box_intervals: Dict[int, int] = Field(default_factory=lambda: dict(DEFAULT_BOX_INTERVALS))
    initial_working_set_size: int = Field(default=25, ge=0)
    working_set_expand_size: int = Field(default=5, ge=0)
    success_rate_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    mastery_box: int = Field(
        default=5,
        ge=1,
        le=5,
        description="A direction counts as mastered at or above this box"
    )

    # Session engine
    almost_accuracy_threshold: int = Field(default=75, ge=0, le=100)
    retry_offset: int = Field(default=4, ge=1)
    max_delayed_retries: int = Field(default=2, ge=0)
    inactivity_timeout_minutes: int = Field(default=120, ge=1)
    timezone: str = Field(default='Europe/Istanbul')

    @field_validator('box_intervals', mode='before')
    @classmethod
    def parse_box_intervals(cls, value):
        # Stored as a JSON object in the settings table
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise ValueError(f'box_intervals must be a JSON object: {e}')
        return value

    @field_validator('box_intervals')
    @classmethod
    def validate_box_intervals(cls, value: Dict[int, int]) -> Dict[int, int]:
        merged = dict(DEFAULT_BOX_INTERVALS)
        merged.update(value)
        for box, interval in merged.items():
            if box not in DEFAULT_BOX_INTERVALS:
                raise ValueError(f'Unknown box in box_intervals: {box}')
            if interval < 1:
                raise ValueError(f'Interval for box {box} must be >= 1, got: {interval}')
        return merged

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f'Unknown timezone: {value}')
        return value

    def target_count_for(self, session_type: str) -> int:
        """Number of words to select for a session type"""
        counts = {
            'quick': self.quick_lesson_count,
            'weak_words': self.weak_words_count,
            'review_mastered': self.review_mastered_count,
            'category': self.category_lesson_count or self.quick_lesson_count,
        }
        return counts.get(session_type, self.quick_lesson_count)
