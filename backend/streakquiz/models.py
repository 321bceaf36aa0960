from streakquiz import db
from streakquiz.services.quiz.records import MAX_USER_ID_LENGTH
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc)


class UserRecord(db.Model):
    """Best score/streak per user; the remote authoritative copy."""
    __tablename__ = 'user_record'
    user_id = db.Column(db.String(MAX_USER_ID_LENGTH), primary_key=True)
    best_score = db.Column(db.Integer, default=0, nullable=False, index=True)
    best_streak = db.Column(db.Integer, default=0, nullable=False, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'best_score': self.best_score,
            'best_streak': self.best_streak,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
