"""
Evaluation Pydantic Models

Result of comparing a typed answer against the expected answer.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Verdict(str, Enum):
    """Outcome of an answer comparison"""
    CORRECT = "correct"
    ALMOST = "almost"  # close enough to allow one typo retry
    INCORRECT = "incorrect"


class MatchResult(BaseModel):
    """
    Answer match result.

    Example:
    {
        "verdict": "almost",
        "accuracy": 80,
        "distance": 1,
        "message": "Almost! Check your spelling"
    }
    """
    verdict: Verdict = Field(
        description="correct, almost or incorrect"
    )
    accuracy: int = Field(
        default=0,
        ge=0,
        le=100,
        description="Share of matching characters (0-100) after normalization"
    )
    distance: int = Field(
        default=0,
        ge=0,
        description="Levenshtein distance between the normalized strings"
    )
    message: Optional[str] = Field(
        default=None,
        description="Learner-facing hint, set for 'almost'"
    )
