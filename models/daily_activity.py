from models import db


class DailyActivity(db.Model):
    """DailyActivity model - per-user counters for one calendar day"""
    __tablename__ = 'daily_activity'

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)

    sessions_completed = db.Column(db.Integer, nullable=False, default=0)
    words_introduced = db.Column(db.Integer, nullable=False, default=0)
    stars_earned = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'date', name='uq_user_activity_date'),
    )

    def __repr__(self):
        return f'<DailyActivity user_id={self.user_id} date={self.date}>'
