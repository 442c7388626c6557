from models import db
from datetime import datetime, timezone
from sqlalchemy.orm import validates
import uuid

SESSION_TYPE_QUICK = 'quick'
SESSION_TYPE_WEAK_WORDS = 'weak_words'
SESSION_TYPE_REVIEW_MASTERED = 'review_mastered'
SESSION_TYPE_CATEGORY = 'category'

VALID_SESSION_TYPES = [
    SESSION_TYPE_QUICK,
    SESSION_TYPE_WEAK_WORDS,
    SESSION_TYPE_REVIEW_MASTERED,
    SESSION_TYPE_CATEGORY,
]

STATUS_IN_PROGRESS = 'in_progress'
STATUS_COMPLETED = 'completed'
STATUS_ABANDONED = 'abandoned'


class TrainingSession(db.Model):
    """TrainingSession model - persisted header of a drill session.

    Mirrors the running tally of the in-memory session for recovery and
    reporting. The in-memory session stays the source of truth while the
    session is in flight.
    """
    __tablename__ = 'training_sessions'

    # UUID shared with the in-memory session
    session_id = db.Column(db.String(36), primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    session_type = db.Column(db.String(20), nullable=False)
    category_filter = db.Column(db.String, default='all')

    # in_progress, completed, abandoned
    status = db.Column(db.String(20), nullable=False, default=STATUS_IN_PROGRESS, index=True)

    started_at = db.Column(db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    ended_at = db.Column(db.DateTime)

    words_asked = db.Column(db.Integer, nullable=False, default=0)
    words_correct = db.Column(db.Integer, nullable=False, default=0)
    stars_earned = db.Column(db.Integer, nullable=False, default=0)

    # Relationships
    user = db.relationship('User', back_populates='training_sessions')

    @validates('session_id')
    def validate_session_id(self, key, session_id):
        if not session_id:
            raise ValueError('session_id is required')
        try:
            uuid.UUID(session_id)
        except ValueError:
            raise ValueError(f'Invalid UUID format: {session_id}')
        return session_id

    @validates('session_type')
    def validate_session_type(self, key, session_type):
        if session_type not in VALID_SESSION_TYPES:
            raise ValueError(f'Invalid session type: {session_type}')
        return session_type

    def __repr__(self):
        return f'<TrainingSession {self.session_id} ({self.status})>'
