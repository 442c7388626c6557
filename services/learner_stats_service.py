"""Learner Stats Service - Stars, day streaks and daily activity counters"""
import logging
import random
from datetime import date, timedelta
from typing import Optional, Tuple

from models import db
from models.achievement import Achievement
from models.daily_activity import DailyActivity
from models.learner_stats import LearnerStats
from services.date_utils import days_since, is_yesterday

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_DAYS = 7

INACTIVITY_MESSAGES = [
    "Hey! 📚 {days} days without practice? The words miss you! 💕",
    "Welcome back! 🌸 It's been {days} days. Ready to learn? ✨",
    "{days} days away? 🤔 The vocabulary is getting lonely! 💖",
    "Hey superstar! 🌟 {days} days is too long! Let's practice! 🎀",
    "The words have been waiting {days} days for you! 📖💕",
    "{days} days break? Time to wake up those brain cells! 🧠✨",
]


def calculate_streak(
    current_streak: int,
    longest_streak: int,
    last_active_date: Optional[date],
    today: date
) -> Tuple[int, int]:
    """
    Next (current_streak, longest_streak) after activity on `today`.

    Rules:
    - first activity ever -> 1
    - already active today -> unchanged
    - last active yesterday -> +1
    - any larger gap -> back to 1

    The longest streak never decreases.

    Example:
        >>> calculate_streak(3, 5, date(2025, 1, 1), date(2025, 1, 2))
        (4, 5)
    """
    if last_active_date is None:
        current = 1
    elif last_active_date == today:
        current = current_streak
    elif is_yesterday(last_active_date, today):
        current = current_streak + 1
    else:
        current = 1

    return current, max(longest_streak, current)


def get_learner_stats(user_id: int) -> Optional[LearnerStats]:
    return db.session.get(LearnerStats, user_id)


def update_learner_stats(user_id: int, today: date, stars_earned: int) -> LearnerStats:
    """
    Add a finished session's stars and advance the day streak.

    Args:
        user_id: The ID of the user
        today: Calendar date of the activity in the learner timezone
        stars_earned: Stars earned in the session

    Returns:
        The updated LearnerStats row (created on first activity)

    Raises:
        RuntimeError: If database operations fail
    """
    try:
        stats = db.session.get(LearnerStats, user_id)
        if not stats:
            stats = LearnerStats(
                user_id=user_id,
                total_stars=0,
                current_streak=0,
                longest_streak=0
            )
            db.session.add(stats)

        current, longest = calculate_streak(
            stats.current_streak or 0,
            stats.longest_streak or 0,
            stats.last_active_date,
            today
        )

        stats.total_stars = (stats.total_stars or 0) + stars_earned
        stats.current_streak = current
        stats.longest_streak = longest
        stats.last_active_date = today

        db.session.commit()

        logger.info(
            f"Updated learner stats: user_id={user_id}, total_stars={stats.total_stars}, "
            f"current_streak={current}, longest_streak={longest}"
        )
        return stats

    except Exception as e:
        logger.error(f"Failed to update learner stats for user_id={user_id}: {str(e)}", exc_info=True)
        db.session.rollback()
        raise RuntimeError(f"Failed to update learner stats: {str(e)}")


def record_daily_activity(
    user_id: int,
    day: date,
    sessions_completed: int = 0,
    words_introduced: int = 0,
    stars_earned: int = 0
) -> DailyActivity:
    """Add to the counters of a user's day, creating the row on first use."""
    try:
        activity = DailyActivity.query.filter_by(user_id=user_id, date=day).first()
        if not activity:
            activity = DailyActivity(
                user_id=user_id,
                date=day,
                sessions_completed=0,
                words_introduced=0,
                stars_earned=0
            )
            db.session.add(activity)

        activity.sessions_completed += sessions_completed
        activity.words_introduced += words_introduced
        activity.stars_earned += stars_earned

        db.session.commit()
        return activity

    except Exception as e:
        logger.error(f"Failed to record daily activity for user_id={user_id}: {str(e)}", exc_info=True)
        db.session.rollback()
        raise RuntimeError(f"Failed to record daily activity: {str(e)}")


def get_recent_activity(user_id: int, today: date, days: int = RECENT_ACTIVITY_DAYS) -> list:
    """Activity rows within the last `days` calendar days up to today, newest first."""
    since = today - timedelta(days=days)
    return DailyActivity.query.filter(
        DailyActivity.user_id == user_id,
        DailyActivity.date > since,
        DailyActivity.date <= today
    ).order_by(DailyActivity.date.desc()).all()


def get_learner_summary(user_id: int, today: date) -> dict:
    """
    Dashboard data for a learner: stats, unlocked achievements, recent days.

    Returns:
        dict: {
            'total_stars', 'current_streak', 'longest_streak',
            'last_active_date', 'days_inactive', 'inactivity_message',
            'achievements': [{'type', 'unlocked_at', 'data'}],
            'recent_activity': [{'date', 'sessions_completed', 'words_introduced', 'stars_earned'}]
        }
    """
    stats = db.session.get(LearnerStats, user_id)
    achievements = Achievement.query.filter_by(user_id=user_id).order_by(
        Achievement.unlocked_at.desc()
    ).all()

    last_active = stats.last_active_date if stats else None
    days_inactive = days_since(last_active, today)
    return {
        'total_stars': stats.total_stars if stats else 0,
        'current_streak': stats.current_streak if stats else 0,
        'longest_streak': stats.longest_streak if stats else 0,
        'last_active_date': last_active,
        'days_inactive': days_inactive,
        'inactivity_message': get_inactivity_message(days_inactive),
        'achievements': [
            {'type': a.type, 'unlocked_at': a.unlocked_at, 'data': a.data}
            for a in achievements
        ],
        'recent_activity': [
            {
                'date': activity.date,
                'sessions_completed': activity.sessions_completed,
                'words_introduced': activity.words_introduced,
                'stars_earned': activity.stars_earned
            }
            for activity in get_recent_activity(user_id, today)
        ]
    }


def get_inactivity_message(days_inactive: Optional[int],
                           rng: Optional[random.Random] = None) -> Optional[str]:
    """Welcome-back nudge after more than one day away; None otherwise."""
    if days_inactive is None or days_inactive <= 1:
        return None
    rng = rng or random.Random()
    return rng.choice(INACTIVITY_MESSAGES).format(days=days_inactive)
