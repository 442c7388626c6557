"""Leitner spaced repetition scheduler - box transitions, working set growth and word selection"""

import logging
import random
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar

from models.progress_record import ProgressRecord, DIRECTIONS, MAX_BOX
from models.training_session import (
    SESSION_TYPE_CATEGORY,
    SESSION_TYPE_QUICK,
    SESSION_TYPE_REVIEW_MASTERED,
    SESSION_TYPE_WEAK_WORDS,
)
from services import progress_service
from services.date_utils import as_naive_utc
from services.schemas import TrainingSettings

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Only these session types may pull brand new words into the working set
GROWTH_SESSION_TYPES = (SESSION_TYPE_QUICK, SESSION_TYPE_CATEGORY)

EXPAND_REASON_EMPTY = 'empty'
EXPAND_REASON_SUCCESS_RATE = 'success_rate'
EXPAND_REASON_LOW_SUCCESS_RATE = 'low_success_rate'


def get_new_box(current_box: int, is_correct: bool) -> int:
    """
    Box after answering.

    Correct moves up one box (capped at 5); incorrect always goes back to
    box 1, never to 0. A word answered for the first time (box 0) is treated
    as box 1.

    Example:
        >>> get_new_box(5, True)
        5
        >>> get_new_box(5, False)
        1
    """
    box = max(current_box, 1)
    if is_correct:
        return min(box + 1, MAX_BOX)
    return 1


def get_box_interval(box: int, settings: TrainingSettings) -> int:
    return settings.box_intervals.get(box, 1)


def is_due(record: ProgressRecord, settings: TrainingSettings) -> bool:
    """
    Whether a working-set record is eligible this session.

    Box 1 is always due; a record in box b is due when its session counter is
    a multiple of the box interval.
    """
    if record.leitner_box <= 0:
        return False
    if record.leitner_box == 1:
        return True
    interval = get_box_interval(record.leitner_box, settings)
    return (record.session_counter or 0) % interval == 0


def _priority_key(record: ProgressRecord):
    # Lower boxes first, then least recently asked (never asked first)
    last_asked = as_naive_utc(record.last_asked) or datetime.min
    return (record.leitner_box, last_asked, record.id)


def get_due_words(user_id: int, direction: str, settings: TrainingSettings,
                  category: Optional[str] = None) -> List[ProgressRecord]:
    """Due working-set records sorted by (box asc, last asked asc)."""
    due = [
        record for record in progress_service.get_working_set(user_id, direction, category)
        if is_due(record, settings)
    ]
    return sorted(due, key=_priority_key)


def shuffle_words(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Fisher-Yates shuffle of a copy of `items`."""
    rng = rng or random.Random()
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


# Working set growth

def should_expand_working_set(user_id: int, settings: TrainingSettings) -> Tuple[bool, str]:
    """
    Decide whether new words may enter the working set.

    Returns:
        (should_expand, reason) where reason is 'empty', 'success_rate' or
        'low_success_rate'
    """
    if progress_service.get_working_set_size(user_id) == 0:
        return True, EXPAND_REASON_EMPTY

    success_rate = progress_service.get_working_set_success_rate(user_id)
    if success_rate >= settings.success_rate_threshold:
        return True, EXPAND_REASON_SUCCESS_RATE

    logger.debug(
        f"Not expanding working set for user_id={user_id}: success_rate={success_rate:.2f} "
        f"< {settings.success_rate_threshold}"
    )
    return False, EXPAND_REASON_LOW_SUCCESS_RATE


def initialize_working_set(user_id: int, count: int, rng: Optional[random.Random] = None) -> int:
    """
    Promote `count` randomly chosen not-yet-started words to box 1.

    Both directions of a chosen word are promoted together.

    Returns:
        Number of words promoted
    """
    rng = rng or random.Random()
    candidates = progress_service.get_unstarted_word_ids(user_id)
    if not candidates or count <= 0:
        return 0

    chosen = rng.sample(candidates, min(count, len(candidates)))
    progress_service.promote_words(user_id, chosen)

    logger.info(f"Added {len(chosen)} words to the working set for user_id={user_id}")
    return len(chosen)


def expand_working_set(user_id: int, count: int, rng: Optional[random.Random] = None) -> int:
    return initialize_working_set(user_id, count, rng)


def ensure_working_set(user_id: int, settings: TrainingSettings,
                       rng: Optional[random.Random] = None) -> int:
    """Seed an empty working set, or grow it while the learner is doing well."""
    should_expand, reason = should_expand_working_set(user_id, settings)
    if not should_expand:
        return 0
    if reason == EXPAND_REASON_EMPTY:
        return initialize_working_set(user_id, settings.initial_working_set_size, rng)
    return expand_working_set(user_id, settings.working_set_expand_size, rng)


# Selection

def _select_weak_words(user_id: int, direction: str, target_count: int,
                       settings: TrainingSettings) -> List[ProgressRecord]:
    selected = progress_service.get_weak_words(user_id, direction, target_count)

    if len(selected) < target_count:
        seen = {record.id for record in selected}
        fallback = [
            record for record in get_due_words(user_id, direction, settings)
            if record.id not in seen
        ]
        selected = selected + fallback[:target_count - len(selected)]

    return selected


def _select_review_words(user_id: int, direction: str, target_count: int,
                         rng: random.Random) -> List[ProgressRecord]:
    review_words = progress_service.get_review_words(user_id, direction)
    selected = shuffle_words(review_words, rng)[:target_count]
    logger.debug(f"Review words found: {len(review_words)}, selected: {len(selected)}")
    return selected


def _select_due_words(user_id: int, direction: str, category_filter: Optional[str],
                      target_count: int, settings: TrainingSettings,
                      rng: random.Random) -> List[ProgressRecord]:
    selected = get_due_words(user_id, direction, settings, category_filter)[:target_count]
    seen = {record.id for record in selected}

    # Not enough due words: any other working-set word
    if len(selected) < target_count:
        more = [
            record for record in progress_service.get_working_set(user_id, direction, category_filter)
            if record.id not in seen
        ][:target_count - len(selected)]
        selected.extend(more)
        seen.update(record.id for record in more)

    # Still short: never-seen words
    if len(selected) < target_count:
        new_words = [
            record for record in progress_service.get_new_words(user_id, direction, category_filter)
            if record.id not in seen
        ][:target_count - len(selected)]
        selected.extend(new_words)
        seen.update(record.id for record in new_words)

    # Occasionally mix in one fully mastered word as a refresher
    if selected and rng.random() < settings.mastered_review_chance:
        mastered = progress_service.get_mastered_words(
            user_id, direction, settings.mastery_box, category_filter
        )
        if mastered:
            refresher = rng.choice(mastered)
            if refresher.id not in seen:
                selected.append(refresher)
                logger.debug(f"Added mastered refresher progress_id={refresher.id}")

    return selected


def select_words(
    user_id: int,
    session_type: str,
    category_filter: Optional[str],
    target_count: int,
    direction: str,
    settings: TrainingSettings,
    rng: Optional[random.Random] = None
) -> List[ProgressRecord]:
    """
    Select the progress records for one direction of a session.

    - weak_words: most recently asked box 1-2 records, topped up with due
      records (no never-seen words)
    - review_mastered: box 3-5 records, shuffled and truncated
    - quick / category: due records by (box, last asked), then any other
      working-set record, then never-seen records, plus an occasional
      mastered refresher

    The result is shuffled and has no duplicate records.

    Args:
        user_id: The ID of the user
        session_type: quick, weak_words, review_mastered or category
        category_filter: Word category or 'all'
        target_count: Number of records wanted
        direction: en_to_tr or tr_to_en
        settings: Training settings
        rng: Randomness source (seedable for tests)

    Returns:
        List of ProgressRecord
    """
    rng = rng or random.Random()
    if target_count <= 0:
        return []

    if session_type == SESSION_TYPE_WEAK_WORDS:
        selected = _select_weak_words(user_id, direction, target_count, settings)
    elif session_type == SESSION_TYPE_REVIEW_MASTERED:
        selected = _select_review_words(user_id, direction, target_count, rng)
    else:
        selected = _select_due_words(user_id, direction, category_filter, target_count, settings, rng)

    logger.debug(
        f"Selected {len(selected)} words for user_id={user_id}, direction={direction}, "
        f"session_type={session_type} (target was {target_count})"
    )
    return shuffle_words(selected, rng)


def select_words_mixed(
    user_id: int,
    session_type: str,
    category_filter: Optional[str],
    target_count: int,
    settings: TrainingSettings,
    rng: Optional[random.Random] = None
) -> List[ProgressRecord]:
    """
    Select a session's records across both directions.

    The target is split evenly between the directions, the odd word going to
    a randomly chosen direction. When one direction cannot fill its share, the
    other direction is asked for that many more records, limited to what it
    can actually produce. Working-set growth runs once, up front, for the
    session types that introduce new material.
    """
    rng = rng or random.Random()
    if target_count <= 0:
        return []

    if session_type in GROWTH_SESSION_TYPES:
        ensure_working_set(user_id, settings, rng)

    directions = list(DIRECTIONS)
    extra_direction = rng.choice(directions)
    quotas: Dict[str, int] = {
        direction: target_count // 2 + (target_count % 2 if direction == extra_direction else 0)
        for direction in directions
    }

    picked: Dict[str, List[ProgressRecord]] = {
        direction: select_words(user_id, session_type, category_filter, quotas[direction],
                                direction, settings, rng)
        for direction in directions
    }

    for short_direction in directions:
        shortfall = quotas[short_direction] - len(picked[short_direction])
        if shortfall <= 0:
            continue

        other = directions[1] if short_direction == directions[0] else directions[0]
        top_up = select_words(user_id, session_type, category_filter,
                              quotas[other] + shortfall, other, settings, rng)
        have = {record.id for record in picked[other]}
        extra = [record for record in top_up if record.id not in have][:shortfall]
        picked[other] = picked[other] + extra

        logger.debug(f"Backfilled {len(extra)} {other} words for {shortfall} missing {short_direction} words")

    combined = shuffle_words(picked[directions[0]] + picked[directions[1]], rng)
    logger.info(
        f"Selected {len(combined)} words for user_id={user_id}, session_type={session_type} "
        f"(target was {target_count})"
    )
    return combined


# Statistics

def get_progress_stats(user_id: int, settings: TrainingSettings) -> dict:
    """
    Progress overview for a learner.

    Returns:
        dict: {
            'by_direction': {'en_to_tr': {box: count}, 'tr_to_en': {box: count}},
            'total_words': int,
            'fully_mastered': int,
            'working_set_size': int,
            'working_set_success_rate': int (percent)
        }
    """
    success_rate = progress_service.get_working_set_success_rate(user_id)
    return {
        'by_direction': progress_service.get_box_counts(user_id),
        'total_words': progress_service.count_words(user_id),
        'fully_mastered': progress_service.count_fully_mastered(user_id, settings.mastery_box),
        'working_set_size': progress_service.get_working_set_size(user_id),
        'working_set_success_rate': round(success_rate * 100)
    }


def are_all_words_mastered(user_id: int, settings: TrainingSettings) -> bool:
    total_words = progress_service.count_words(user_id)
    if total_words == 0:
        return False
    return progress_service.count_fully_mastered(user_id, settings.mastery_box) == total_words


def get_review_word_count(user_id: int) -> int:
    return progress_service.count_review_words(user_id)
