from models import db


class LearnerStats(db.Model):
    """LearnerStats model - cumulative stars and day streaks, updated at session end"""
    __tablename__ = 'learner_stats'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), primary_key=True)

    total_stars = db.Column(db.Integer, nullable=False, default=0)
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    longest_streak = db.Column(db.Integer, nullable=False, default=0)

    # Calendar date in the learner timezone
    last_active_date = db.Column(db.Date)

    def __repr__(self):
        return (f'<LearnerStats user_id={self.user_id} stars={self.total_stars} '
                f'streak={self.current_streak}>')
