"""Progress Service - Storage queries and mutations for per-direction Leitner progress"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import distinct, func, select

from models import db
from models.progress_record import ProgressRecord, DIRECTIONS
from models.user import User
from models.word import Word
from services.date_utils import utc_now

logger = logging.getLogger(__name__)

ALL_CATEGORIES = 'all'


def _filter_category(query, category: Optional[str]):
    if category and category != ALL_CATEGORIES:
        query = query.join(Word, ProgressRecord.word_id == Word.id).filter(Word.category == category)
    return query


def _working_set_order():
    return (
        ProgressRecord.leitner_box.asc(),
        ProgressRecord.last_asked.asc().nulls_first(),
        ProgressRecord.id.asc()
    )


def create_progress_for_word(word_id: int) -> int:
    """
    Create box-0 progress records for a newly added word, for every user.

    Both directions are created; existing (user, word, direction) records are
    left alone so the call is safe to repeat.

    Args:
        word_id: The ID of the word

    Returns:
        Number of records created

    Raises:
        ValueError: If the word does not exist
        RuntimeError: If database operations fail
    """
    if not db.session.get(Word, word_id):
        raise ValueError(f"Word {word_id} not found")

    try:
        existing = {
            (user_id, direction)
            for user_id, direction in db.session.query(
                ProgressRecord.user_id, ProgressRecord.direction
            ).filter_by(word_id=word_id).all()
        }

        created = 0
        for (user_id,) in db.session.query(User.id).all():
            for direction in DIRECTIONS:
                if (user_id, direction) in existing:
                    continue
                db.session.add(ProgressRecord(
                    user_id=user_id,
                    word_id=word_id,
                    direction=direction,
                    leitner_box=0
                ))
                created += 1

        db.session.commit()
        logger.info(f"Created {created} progress records for word_id={word_id}")
        return created

    except Exception as e:
        logger.error(f"Failed to create progress for word_id={word_id}: {str(e)}", exc_info=True)
        db.session.rollback()
        raise RuntimeError(f"Failed to create progress records: {str(e)}")


def create_progress_for_user(user_id: int) -> int:
    """
    Create box-0 progress records in both directions for every word (new learner).

    Returns:
        Number of records created
    """
    if not db.session.get(User, user_id):
        raise ValueError(f"User {user_id} not found")

    try:
        existing = {
            (word_id, direction)
            for word_id, direction in db.session.query(
                ProgressRecord.word_id, ProgressRecord.direction
            ).filter_by(user_id=user_id).all()
        }

        created = 0
        for (word_id,) in db.session.query(Word.id).order_by(Word.id).all():
            for direction in DIRECTIONS:
                if (word_id, direction) in existing:
                    continue
                db.session.add(ProgressRecord(
                    user_id=user_id,
                    word_id=word_id,
                    direction=direction,
                    leitner_box=0
                ))
                created += 1

        db.session.commit()
        logger.info(f"Created {created} progress records for user_id={user_id}")
        return created

    except Exception as e:
        logger.error(f"Failed to create progress for user_id={user_id}: {str(e)}", exc_info=True)
        db.session.rollback()
        raise RuntimeError(f"Failed to create progress records: {str(e)}")


def get_progress(user_id: int, word_id: int, direction: str) -> Optional[ProgressRecord]:
    return ProgressRecord.query.filter_by(
        user_id=user_id,
        word_id=word_id,
        direction=direction
    ).first()


def get_working_set(user_id: int, direction: Optional[str] = None,
                    category: Optional[str] = None) -> List[ProgressRecord]:
    """
    Records currently in rotation (box 1-5), lowest box and least recently asked first.

    Args:
        user_id: The ID of the user
        direction: Restrict to one direction (both when None)
        category: Restrict to a word category ('all' or None for every category)
    """
    query = ProgressRecord.query.filter(
        ProgressRecord.user_id == user_id,
        ProgressRecord.leitner_box > 0
    )
    if direction:
        query = query.filter(ProgressRecord.direction == direction)
    query = _filter_category(query, category)
    return query.order_by(*_working_set_order()).all()


def get_working_set_size(user_id: int) -> int:
    """Number of distinct words with at least one direction in box 1-5."""
    return db.session.query(func.count(distinct(ProgressRecord.word_id))).filter(
        ProgressRecord.user_id == user_id,
        ProgressRecord.leitner_box > 0
    ).scalar() or 0


def get_working_set_success_rate(user_id: int) -> float:
    """
    Share of correct answers over the whole working set.

    Returns 1.0 when nothing has been asked yet so an untouched working set
    never blocks expansion.
    """
    total_asked, total_correct = db.session.query(
        func.sum(ProgressRecord.times_asked),
        func.sum(ProgressRecord.times_correct)
    ).filter(
        ProgressRecord.user_id == user_id,
        ProgressRecord.leitner_box > 0
    ).one()

    if not total_asked:
        return 1.0
    return (total_correct or 0) / total_asked


def get_weak_words(user_id: int, direction: str, limit: int) -> List[ProgressRecord]:
    """Most recently asked records still in box 1 or 2."""
    return ProgressRecord.query.filter(
        ProgressRecord.user_id == user_id,
        ProgressRecord.direction == direction,
        ProgressRecord.leitner_box.in_((1, 2)),
        ProgressRecord.last_asked.isnot(None)
    ).order_by(
        ProgressRecord.last_asked.desc(),
        ProgressRecord.id.asc()
    ).limit(limit).all()


def get_review_words(user_id: int, direction: str) -> List[ProgressRecord]:
    """Well-learned records (box 3-5) for a review session."""
    return ProgressRecord.query.filter(
        ProgressRecord.user_id == user_id,
        ProgressRecord.direction == direction,
        ProgressRecord.leitner_box.in_((3, 4, 5))
    ).order_by(ProgressRecord.id.asc()).all()


def get_new_words(user_id: int, direction: str, category: Optional[str] = None) -> List[ProgressRecord]:
    """Never-introduced records (box 0), oldest words first."""
    query = ProgressRecord.query.filter(
        ProgressRecord.user_id == user_id,
        ProgressRecord.direction == direction,
        ProgressRecord.leitner_box == 0
    )
    query = _filter_category(query, category)
    return query.order_by(ProgressRecord.word_id.asc()).all()


def _fully_mastered_word_ids(user_id: int, mastery_box: int):
    return select(ProgressRecord.word_id).where(
        ProgressRecord.user_id == user_id,
        ProgressRecord.leitner_box >= mastery_box
    ).group_by(ProgressRecord.word_id).having(
        func.count(ProgressRecord.id) == len(DIRECTIONS)
    )


def get_mastered_words(user_id: int, direction: str, mastery_box: int,
                       category: Optional[str] = None) -> List[ProgressRecord]:
    """Records (in one direction) of words mastered in both directions."""
    query = ProgressRecord.query.filter(
        ProgressRecord.user_id == user_id,
        ProgressRecord.direction == direction,
        ProgressRecord.word_id.in_(_fully_mastered_word_ids(user_id, mastery_box))
    )
    query = _filter_category(query, category)
    return query.order_by(ProgressRecord.id.asc()).all()


def count_fully_mastered(user_id: int, mastery_box: int) -> int:
    """Number of words whose both directions reached the mastery box."""
    subquery = _fully_mastered_word_ids(user_id, mastery_box).subquery()
    return db.session.query(func.count()).select_from(subquery).scalar() or 0


def count_words(user_id: int) -> int:
    """Number of distinct words the user has progress records for."""
    return db.session.query(func.count(distinct(ProgressRecord.word_id))).filter(
        ProgressRecord.user_id == user_id
    ).scalar() or 0


def count_review_words(user_id: int) -> int:
    return ProgressRecord.query.filter(
        ProgressRecord.user_id == user_id,
        ProgressRecord.leitner_box.in_((3, 4, 5))
    ).count()


def get_box_counts(user_id: int) -> Dict[str, Dict[int, int]]:
    """
    Record counts per direction and box.

    Example:
        >>> get_box_counts(user_id=1)
        {'en_to_tr': {0: 20, 1: 3, 2: 1, 3: 0, 4: 0, 5: 1}, 'tr_to_en': {...}}
    """
    counts = {direction: {box: 0 for box in range(6)} for direction in DIRECTIONS}
    rows = db.session.query(
        ProgressRecord.direction,
        ProgressRecord.leitner_box,
        func.count(ProgressRecord.id)
    ).filter(
        ProgressRecord.user_id == user_id
    ).group_by(ProgressRecord.direction, ProgressRecord.leitner_box).all()

    for direction, box, count in rows:
        if direction in counts:
            counts[direction][box] = count
    return counts


def get_unstarted_word_ids(user_id: int) -> List[int]:
    """Distinct words with at least one direction still in box 0."""
    rows = db.session.query(distinct(ProgressRecord.word_id)).filter(
        ProgressRecord.user_id == user_id,
        ProgressRecord.leitner_box == 0
    ).order_by(ProgressRecord.word_id.asc()).all()
    return [word_id for (word_id,) in rows]


def promote_words(user_id: int, word_ids: Iterable[int], now: Optional[datetime] = None) -> int:
    """
    Move words into the working set: box 0 -> box 1 in both directions.

    first_learned is stamped where it is still empty.

    Returns:
        Number of progress records promoted
    """
    word_ids = list(word_ids)
    if not word_ids:
        return 0
    now = now or utc_now()

    try:
        records = ProgressRecord.query.filter(
            ProgressRecord.user_id == user_id,
            ProgressRecord.word_id.in_(word_ids),
            ProgressRecord.leitner_box == 0
        ).all()

        for record in records:
            record.leitner_box = 1
            if record.first_learned is None:
                record.first_learned = now

        db.session.commit()
        logger.info(f"Promoted {len(records)} progress records into the working set for user_id={user_id}")
        return len(records)

    except Exception as e:
        logger.error(f"Failed to promote words for user_id={user_id}: {str(e)}", exc_info=True)
        db.session.rollback()
        raise RuntimeError(f"Failed to promote words: {str(e)}")


def update_after_answer(progress_id: int, new_box: int, is_correct: bool,
                        now: Optional[datetime] = None) -> dict:
    """
    Commit the outcome of a first-attempt answer.

    Box, counters, timestamps and the session counter are committed together:
    - leitner_box = new_box
    - times_asked + 1, times_correct + 1 when correct
    - last_asked = now, first_learned = now if still empty
    - session_counter + 1

    Args:
        progress_id: The ID of the progress record
        new_box: Box after the answer
        is_correct: Whether the answer was correct
        now: Timestamp to record (defaults to current UTC time)

    Returns:
        dict: {'old_box': int, 'new_box': int, 'times_asked': int, 'times_correct': int}

    Raises:
        ValueError: If the progress record does not exist
        RuntimeError: If database operations fail
    """
    if not isinstance(progress_id, int) or progress_id <= 0:
        raise ValueError(f"progress_id must be a positive integer, got: {progress_id}")

    progress = db.session.get(ProgressRecord, progress_id)
    if not progress:
        logger.error(f"Progress record not found: {progress_id}")
        raise ValueError(f"Progress record {progress_id} not found")

    now = now or utc_now()

    try:
        old_box = progress.leitner_box
        progress.leitner_box = new_box
        progress.times_asked = (progress.times_asked or 0) + 1
        if is_correct:
            progress.times_correct = (progress.times_correct or 0) + 1
        progress.last_asked = now
        if progress.first_learned is None:
            progress.first_learned = now
        progress.session_counter = (progress.session_counter or 0) + 1

        db.session.commit()

        logger.info(
            f"Updated progress after answer: id={progress_id}, user_id={progress.user_id}, "
            f"word_id={progress.word_id}, direction={progress.direction}, "
            f"box {old_box} -> {new_box}, is_correct={is_correct}"
        )

        return {
            'old_box': old_box,
            'new_box': progress.leitner_box,
            'times_asked': progress.times_asked,
            'times_correct': progress.times_correct
        }

    except ValueError:
        db.session.rollback()
        raise
    except Exception as e:
        logger.error(f"Failed to update progress {progress_id}: {str(e)}", exc_info=True)
        db.session.rollback()
        raise RuntimeError(f"Failed to update progress: {str(e)}")
