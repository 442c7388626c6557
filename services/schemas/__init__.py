"""
Pydantic models shared by the drill engine

- Evaluation models (Verdict, MatchResult)
- Settings model (TrainingSettings)
- Session result models (StartResult, SubmitResult, SessionSummary, ...)
"""

from .evaluation_models import Verdict, MatchResult
from .settings_models import TrainingSettings, DEFAULT_BOX_INTERVALS
from .session_models import (
    ErrorCode,
    SessionError,
    WordStats,
    PresentedWord,
    StartResult,
    SubmitResult,
    AchievementEvent,
    SessionSummary,
    SessionState,
    SaveResult
)

__all__ = [
    'Verdict',
    'MatchResult',
    'TrainingSettings',
    'DEFAULT_BOX_INTERVALS',
    'ErrorCode',
    'SessionError',
    'WordStats',
    'PresentedWord',
    'StartResult',
    'SubmitResult',
    'AchievementEvent',
    'SessionSummary',
    'SessionState',
    'SaveResult'
]
