from models import db
from datetime import datetime, timezone
from sqlalchemy.orm import validates


class Word(db.Model):
    """Word model - shared vocabulary entry with its English and Turkish forms"""
    __tablename__ = 'words'

    id = db.Column(db.Integer, primary_key=True)

    english = db.Column(db.String, unique=True, nullable=False)
    turkish = db.Column(db.String, nullable=False)

    # noun, verb, adjective, ... ('verb' enables the "to " prefix handling)
    category = db.Column(db.String, nullable=False, default='other', index=True)

    # May embed a cloze marker, e.g. "I {eat} an apple"
    example_sentence = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    progress = db.relationship('ProgressRecord', back_populates='word', lazy='dynamic',
                               cascade='all, delete-orphan')

    @validates('english', 'turkish')
    def validate_text(self, key, text):
        if not text or not text.strip():
            raise ValueError(f'Word {key} cannot be empty or whitespace')
        return text.strip()

    @property
    def is_verb(self) -> bool:
        return self.category == 'verb'

    def __repr__(self):
        return f'<Word {self.english} / {self.turkish}>'
