"""
Answer Matcher - Normalizes and fuzzily compares typed answers.

Answers are compared after lowercasing, trimming, folding Turkish letters to
their ASCII base letters and collapsing whitespace/hyphens. Anything that is
not an exact match is scored with the Levenshtein distance; answers that are
close enough come back as 'almost' so the learner gets one retry.
"""

import logging
import math
import re
from typing import List, Optional

from services.schemas import MatchResult, Verdict

logger = logging.getLogger(__name__)

ALMOST_MESSAGE = "Almost! Check your spelling 🤔"
DEFAULT_ALMOST_THRESHOLD = 75

VERB_PREFIX = "to "

# Turkish letters folded to their ASCII base letter
ACCENT_FOLD_MAP = {
    'ç': 'c', 'Ç': 'C',
    'ğ': 'g', 'Ğ': 'G',
    'ı': 'i', 'İ': 'I',
    'ö': 'o', 'Ö': 'O',
    'ş': 's', 'Ş': 'S',
    'ü': 'u', 'Ü': 'U',
    'â': 'a', 'Â': 'A',
    'î': 'i', 'Î': 'I',
    'û': 'u', 'Û': 'U',
    '\u0307': '',  # combining dot above, left behind by lowercasing 'İ'
}

_FOLD_TABLE = str.maketrans(ACCENT_FOLD_MAP)
_WHITESPACE_RE = re.compile(r'\s+')
_CLOZE_RE = re.compile(r'\{([^}]+)\}')


def fold_accents(text: Optional[str]) -> str:
    """Replace Turkish accented letters with their ASCII base letters."""
    if not text:
        return ''
    return text.translate(_FOLD_TABLE)


def normalize_for_comparison(text: Optional[str]) -> str:
    """
    Normalize a string for answer comparison.

    Steps: fold accents, lowercase, fold hyphens to spaces, collapse runs of
    whitespace to a single space, trim.

    Args:
        text: Raw answer text

    Returns:
        Normalized string ('' for None)

    Example:
        >>> normalize_for_comparison("  Çalışıyorum ")
        'calisiyorum'
        >>> normalize_for_comparison("ice-cream")
        'ice cream'
    """
    if not text:
        return ''
    folded = fold_accents(text).lower()
    folded = folded.replace('-', ' ')
    return _WHITESPACE_RE.sub(' ', folded).strip()


def strip_to_prefix(text: Optional[str]) -> str:
    """Remove a leading infinitive 'to ' (any case) from a verb answer."""
    if not text:
        return ''
    trimmed = text.strip()
    if trimmed.lower().startswith(VERB_PREFIX):
        return trimmed[len(VERB_PREFIX):]
    return trimmed


def levenshtein_distance(first: str, second: str) -> int:
    """
    Edit distance (insertions, deletions, substitutions) between two strings.

    Uses a rolling two-row table.

    Example:
        >>> levenshtein_distance("hapy", "happy")
        1
    """
    if first == second:
        return 0
    if not first:
        return len(second)
    if not second:
        return len(first)

    previous = list(range(len(second) + 1))
    for i, first_char in enumerate(first, start=1):
        current = [i] + [0] * len(second)
        for j, second_char in enumerate(second, start=1):
            cost = 0 if first_char == second_char else 1
            current[j] = min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost   # substitution
            )
        previous = current

    return previous[-1]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_accuracy(user_normalized: str, correct_normalized: str, distance: Optional[int] = None) -> int:
    """
    Percentage of matching characters between two normalized strings.

    accuracy = round((max_len - distance) / max_len * 100), capped at 99 unless
    the strings are equal. An empty expected answer always scores 0.
    """
    if not correct_normalized:
        return 0
    if distance is None:
        distance = levenshtein_distance(user_normalized, correct_normalized)
    max_len = max(len(user_normalized), len(correct_normalized))
    accuracy = round_half_up((max_len - distance) / max_len * 100)
    if distance > 0:
        # Only an exact match scores 100, however long the strings
        accuracy = min(accuracy, 99)
    return accuracy


def evaluate(
    user_answer: Optional[str],
    correct_answer: Optional[str],
    is_verb_reversed: bool = False,
    almost_threshold: int = DEFAULT_ALMOST_THRESHOLD
) -> MatchResult:
    """
    Compare a learner's typed answer against the expected answer.

    Workflow:
    1. Normalize both strings
    2. For reversed verbs, accept the answer with or without the leading "to "
       and continue with whichever variant is closer
    3. Exact match on the normalized forms -> correct
    4. Otherwise score with the edit distance: accuracy >= almost_threshold
       with at least one matching character -> almost, else incorrect

    Args:
        user_answer: What the learner typed
        correct_answer: The expected answer
        is_verb_reversed: True when the expected answer is an English verb
                          ("to eat") so the prefix is optional
        almost_threshold: Minimum accuracy (0-100) for an 'almost' verdict

    Returns:
        MatchResult with verdict, accuracy, distance and optional message

    Examples:
        >>> evaluate("hapy", "happy").verdict
        <Verdict.ALMOST: 'almost'>
        >>> evaluate("eat", "to eat", is_verb_reversed=True).verdict
        <Verdict.CORRECT: 'correct'>
    """
    user_normalized = normalize_for_comparison(user_answer)
    correct_normalized = normalize_for_comparison(correct_answer)

    if not correct_normalized:
        logger.warning("Evaluating against an empty correct answer")
        return MatchResult(
            verdict=Verdict.INCORRECT,
            accuracy=0,
            distance=len(user_normalized)
        )

    if is_verb_reversed:
        user_stripped = normalize_for_comparison(strip_to_prefix(user_answer))
        correct_stripped = normalize_for_comparison(strip_to_prefix(correct_answer))

        if user_stripped == correct_stripped or user_normalized == correct_normalized:
            return MatchResult(verdict=Verdict.CORRECT, accuracy=100, distance=0)

        distance_with_prefix = levenshtein_distance(user_normalized, correct_normalized)
        distance_without_prefix = levenshtein_distance(user_stripped, correct_stripped)

        if distance_without_prefix < distance_with_prefix and correct_stripped:
            user_normalized = user_stripped
            correct_normalized = correct_stripped

    if user_normalized == correct_normalized:
        return MatchResult(verdict=Verdict.CORRECT, accuracy=100, distance=0)

    distance = levenshtein_distance(user_normalized, correct_normalized)
    accuracy = calculate_accuracy(user_normalized, correct_normalized, distance)
    max_len = max(len(user_normalized), len(correct_normalized))
    matching_chars = max_len - distance

    if user_normalized and accuracy >= almost_threshold and matching_chars >= 1 and distance > 0:
        logger.debug(
            f"Almost correct: user='{user_normalized}', correct='{correct_normalized}', "
            f"distance={distance}, accuracy={accuracy}"
        )
        return MatchResult(
            verdict=Verdict.ALMOST,
            accuracy=accuracy,
            distance=distance,
            message=ALMOST_MESSAGE
        )

    return MatchResult(verdict=Verdict.INCORRECT, accuracy=accuracy, distance=distance)


def align_characters(user_answer: Optional[str], correct_answer: Optional[str]) -> List[bool]:
    """
    Position-by-position correctness flags over the learner's answer.

    Each character is compared with the character at the same position of the
    expected answer (accent- and case-folded). There is no edit-distance
    alignment, so this is only meant for highlighting a wrong answer.

    Example:
        >>> align_characters("cat", "car")
        [True, True, False]
    """
    user_chars = fold_accents((user_answer or '').strip()).lower()
    correct_chars = fold_accents((correct_answer or '').strip()).lower()
    return [
        index < len(correct_chars) and char == correct_chars[index]
        for index, char in enumerate(user_chars)
    ]


def process_example_sentence(sentence: Optional[str], direction: str) -> Optional[str]:
    """
    Prepare an example sentence for display.

    en_to_tr shows the full sentence with the cloze braces removed; tr_to_en
    blanks out the marked word so the sentence does not give the answer away.
    """
    if not sentence:
        return None
    if direction == 'en_to_tr':
        return _CLOZE_RE.sub(r'\1', sentence)
    return _CLOZE_RE.sub('____', sentence)


def extract_blank_word(sentence: Optional[str]) -> Optional[str]:
    """Return the word inside the first {…} marker, if any."""
    if not sentence:
        return None
    match = _CLOZE_RE.search(sentence)
    return match.group(1) if match else None


def generate_answer_hint(answer: Optional[str]) -> str:
    """
    Underscore hint with the shape of the answer.

    Example:
        >>> generate_answer_hint("to eat")
        '_ _   _ _ _'
    """
    if not answer:
        return ''
    return '   '.join(' '.join('_' for _ in word) for word in answer.split(' '))
