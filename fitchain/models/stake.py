# backend/fitchain/models/stake.py
from datetime import datetime
from .. import db

COMPETITION_TYPES = ("daily", "meal")
STAKE_STATUSES = ("active", "completed", "cancelled")


def _money(value):
    return float(value) if value is not None else 0.0


# -----------------------------
# Stakes
# -----------------------------
class Stake(db.Model):
    __tablename__ = "stakes"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(
        db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    creator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    competition_type = db.Column(
        db.Enum(*COMPETITION_TYPES, name="stake_competition_type"),
        nullable=False,
        default="daily",
    )
    meal_type = db.Column(db.Enum("breakfast", "lunch", "dinner", name="stake_meal_type"))
    stake_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_pool = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    status = db.Column(
        db.Enum(*STAKE_STATUSES, name="stake_status"),
        nullable=False,
        default="active",
    )
    winner_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    group = db.relationship("Group", back_populates="stakes")
    creator = db.relationship("User", foreign_keys=[creator_id])
    winner = db.relationship("User", foreign_keys=[winner_id])
    participants = db.relationship(
        "StakeParticipant",
        back_populates="stake",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "group_id": self.group_id,
            "group_name": self.group.name if self.group else None,
            "creator_id": self.creator_id,
            "creator_username": self.creator.username if self.creator else None,
            "competition_type": self.competition_type,
            "meal_type": self.meal_type,
            "stake_amount": _money(self.stake_amount),
            "total_pool": _money(self.total_pool),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "status": self.status,
            "winner_id": self.winner_id,
            "winner_username": self.winner.username if self.winner else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class StakeParticipant(db.Model):
    __tablename__ = "stake_participants"
    __table_args__ = (db.UniqueConstraint("stake_id", "user_id", name="uq_stake_participant"),)

    id = db.Column(db.Integer, primary_key=True)
    stake_id = db.Column(
        db.Integer, db.ForeignKey("stakes.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    calories_tracked = db.Column(db.Integer, nullable=False, default=0)
    images_submitted = db.Column(db.Integer, nullable=False, default=0)
    is_qualified = db.Column(db.Boolean, nullable=False, default=False)
    joined_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    stake = db.relationship("Stake", back_populates="participants")
    user = db.relationship("User", backref="stake_participations")

    def to_dict(self):
        return {
            "id": self.id,
            "stake_id": self.stake_id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "amount": _money(self.amount),
            "calories_tracked": self.calories_tracked or 0,
            "images_submitted": self.images_submitted or 0,
            "is_qualified": bool(self.is_qualified),
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }
