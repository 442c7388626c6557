from models import db
from sqlalchemy.orm import validates

DIRECTION_EN_TO_TR = 'en_to_tr'
DIRECTION_TR_TO_EN = 'tr_to_en'
DIRECTIONS = (DIRECTION_EN_TO_TR, DIRECTION_TR_TO_EN)

MIN_BOX = 0
MAX_BOX = 5


class ProgressRecord(db.Model):
    """ProgressRecord model - Leitner box state for one (user, word, direction)"""
    __tablename__ = 'progress'

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    word_id = db.Column(db.Integer, db.ForeignKey('words.id'), nullable=False)

    # en_to_tr or tr_to_en
    direction = db.Column(db.String(8), nullable=False)

    # 0 = not yet in the working set, 1-5 = Leitner boxes
    leitner_box = db.Column(db.Integer, nullable=False, default=0)

    times_asked = db.Column(db.Integer, nullable=False, default=0)
    times_correct = db.Column(db.Integer, nullable=False, default=0)

    last_asked = db.Column(db.DateTime)
    first_learned = db.Column(db.DateTime)

    # Incremented every time the word is asked, drives interval gating
    session_counter = db.Column(db.Integer, nullable=False, default=0)

    # Relationships
    user = db.relationship('User', back_populates='progress')
    word = db.relationship('Word', back_populates='progress')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'word_id', 'direction', name='uq_user_word_direction'),
        db.Index('idx_progress_user_box', 'user_id', 'leitner_box'),
    )

    @validates('direction')
    def validate_direction(self, key, direction):
        if direction not in DIRECTIONS:
            raise ValueError(f'Invalid direction: {direction}. Must be one of {DIRECTIONS}')
        return direction

    @validates('leitner_box')
    def validate_leitner_box(self, key, box):
        if box is None or box < MIN_BOX or box > MAX_BOX:
            raise ValueError(f'leitner_box must be between {MIN_BOX} and {MAX_BOX}, got: {box}')
        return box

    def __repr__(self):
        return (f'<ProgressRecord user_id={self.user_id} word_id={self.word_id} '
                f'direction={self.direction} box={self.leitner_box}>')
