# backend/fitchain/models/user.py
from datetime import datetime
from .. import db

VERIFICATION_TYPES = ("worldid", "guest", "wallet")


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    wallet_address = db.Column(db.String(100))
    nullifier_hash = db.Column(db.String(100), unique=True)
    verification_type = db.Column(
        db.Enum(*VERIFICATION_TYPES, name="verification_type_enum"),
        nullable=False,
        default="guest",
    )

    total_calories = db.Column(db.Integer, default=0, nullable=False)
    total_xp = db.Column(db.Integer, default=0, nullable=False)
    streak = db.Column(db.Integer, default=0, nullable=False)
    level = db.Column(db.Integer, default=1, nullable=False)
    total_entries = db.Column(db.Integer, default=0, nullable=False)
    last_entry_date = db.Column(db.Date)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    @property
    def is_verified(self) -> bool:
        return self.verification_type != "guest"

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "wallet_address": self.wallet_address,
            "verification_type": self.verification_type,
            "total_calories": self.total_calories or 0,
            "total_xp": self.total_xp or 0,
            "streak": self.streak or 0,
            "level": self.level or 1,
            "total_entries": self.total_entries or 0,
            "last_entry_date": self.last_entry_date.isoformat() if self.last_entry_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
