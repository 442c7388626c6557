from models import db
from datetime import datetime, timezone


class Achievement(db.Model):
    """Achievement model - a milestone unlocked once per user (mastered_<N>, streak_<N>)"""
    __tablename__ = 'achievements'

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False)

    # e.g. {"count": 10} or {"days": 7}
    data = db.Column(db.JSON)

    unlocked_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    user = db.relationship('User', back_populates='achievements')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'type', name='uq_user_achievement_type'),
    )

    def __repr__(self):
        return f'<Achievement user_id={self.user_id} type={self.type}>'
