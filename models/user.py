from models import db
from datetime import datetime, timezone
from sqlalchemy.orm import validates


class User(db.Model):
    """User model - a learner with their own progress, stats and achievements"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), unique=True, nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    progress = db.relationship('ProgressRecord', back_populates='user', lazy='dynamic',
                               cascade='all, delete-orphan')
    training_sessions = db.relationship('TrainingSession', back_populates='user', lazy='dynamic',
                                        cascade='all, delete-orphan')
    achievements = db.relationship('Achievement', back_populates='user', lazy='dynamic',
                                   cascade='all, delete-orphan')

    @validates('username')
    def validate_username(self, key, username):
        if not username or not username.strip():
            raise ValueError('Username is required')
        return username.strip()

    def __repr__(self):
        return f'<User {self.username}>'
