from models import db


class Setting(db.Model):
    """Setting model - global tunables stored as key/value strings"""
    __tablename__ = 'settings'

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.String, nullable=False)

    def __repr__(self):
        return f'<Setting {self.key}={self.value}>'
