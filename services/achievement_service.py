"""Achievement Service - Grants one-time milestones for mastered words and day streaks"""
import logging
from typing import List

from models import db
from models.achievement import Achievement
from models.learner_stats import LearnerStats
from services import progress_service
from services.schemas import AchievementEvent, TrainingSettings

logger = logging.getLogger(__name__)

MASTERED_MILESTONES = [5, 10, 15, 20, 25, 30, 40, 50, 75, 100, 150, 200, 250]
STREAK_MILESTONES = [3, 7, 14, 30, 60, 100]

MASTERED_MESSAGES = {
    5: "First 5 words mastered! 🌟 You're on your way!",
    10: "10 words conquered! 🎉 Keep it up!",
    15: "15 words down! 💪 Amazing progress!",
    20: "20 words mastered! 🏆 You're a star!",
    25: "25 words! 🌸 Quarter century champion!",
    30: "30 words! ✨ Incredible work!",
    40: "40 words mastered! 🎀 Superstar status!",
    50: "50 words! 💖 Half a hundred hero!",
    75: "75 words! 🌟 Three quarters master!",
    100: "100 WORDS! 🎊 LEGENDARY! 🎊",
    150: "150 words! 👑 Royalty!",
    200: "200 words! 🌈 Unstoppable!",
    250: "250 words! 💎 Diamond learner!",
}

STREAK_MESSAGES = {
    3: "3 day streak! 🔥 Getting warmed up!",
    7: "1 week streak! 🔥🔥 On fire!",
    14: "2 week streak! 🔥🔥🔥 Blazing!",
    30: "30 day streak! 🏆 Monthly champion!",
    60: "60 day streak! 👑 Dedication royalty!",
    100: "100 DAY STREAK! 💎 LEGENDARY!",
}


def get_achievement_message(milestone: int) -> str:
    return MASTERED_MESSAGES.get(milestone, f"{milestone} words mastered! 🎉")


def get_streak_message(days: int) -> str:
    return STREAK_MESSAGES.get(days, f"{days} day streak! 🔥")


def has_achievement(user_id: int, achievement_type: str) -> bool:
    return Achievement.query.filter_by(user_id=user_id, type=achievement_type).first() is not None


def _grant_reached(user_id: int, value: int, milestones: List[int], prefix: str,
                   data_key: str, message_for) -> List[AchievementEvent]:
    granted = []
    for milestone in milestones:
        if value < milestone:
            break
        achievement_type = f"{prefix}_{milestone}"
        if has_achievement(user_id, achievement_type):
            continue
        db.session.add(Achievement(
            user_id=user_id,
            type=achievement_type,
            data={data_key: milestone}
        ))
        granted.append(AchievementEvent(
            type=achievement_type,
            milestone=milestone,
            message=message_for(milestone)
        ))
    return granted


def check_achievements(user_id: int, settings: TrainingSettings) -> List[AchievementEvent]:
    """
    Grant every reached milestone the user does not have yet.

    Milestones are checked against the number of fully mastered words and the
    current day streak. Each achievement type is created at most once per user.

    Args:
        user_id: The ID of the user
        settings: Training settings (mastery threshold)

    Returns:
        List of newly granted achievements, as events

    Raises:
        RuntimeError: If database operations fail
    """
    fully_mastered = progress_service.count_fully_mastered(user_id, settings.mastery_box)
    stats = db.session.get(LearnerStats, user_id)
    current_streak = stats.current_streak if stats else 0

    try:
        new_achievements = _grant_reached(
            user_id, fully_mastered, MASTERED_MILESTONES, 'mastered', 'count', get_achievement_message
        )
        new_achievements += _grant_reached(
            user_id, current_streak, STREAK_MILESTONES, 'streak', 'days', get_streak_message
        )
        db.session.commit()

    except Exception as e:
        logger.error(f"Failed to grant achievements for user_id={user_id}: {str(e)}", exc_info=True)
        db.session.rollback()
        raise RuntimeError(f"Failed to grant achievements: {str(e)}")

    if new_achievements:
        logger.info(
            f"Granted achievements to user_id={user_id}: "
            f"{[achievement.type for achievement in new_achievements]}"
        )
    return new_achievements
