# backend/fitchain/models/food_entry.py
from datetime import datetime

from sqlalchemy.dialects import mysql

from .. import db

ENTRY_MEAL_TYPES = ("breakfast", "lunch", "dinner", "snack")


# MySQL DATETIME drops sub-second precision by default
PRECISE_DATETIME = db.DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")


def _iso(dt):
    return dt.isoformat() if dt else None


class FoodEntry(db.Model):
    __tablename__ = "food_entries"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="SET NULL"))
    stake_id = db.Column(db.Integer, db.ForeignKey("stakes.id", ondelete="SET NULL"))

    food_name = db.Column(db.String(200), nullable=False)
    calories = db.Column(db.Integer, nullable=False)
    xp_earned = db.Column(db.Integer, nullable=False, default=0)

    # free-form analysis metadata
    confidence = db.Column(db.String(20))
    cuisine = db.Column(db.String(50))
    portion_size = db.Column(db.Text)
    ingredients = db.Column(db.JSON)
    cooking_method = db.Column(db.String(50))
    nutrients = db.Column(db.JSON)
    health_score = db.Column(db.Integer)
    allergens = db.Column(db.JSON)
    alternatives = db.Column(db.Text)

    image_url = db.Column(db.Text, nullable=False)
    meal_type = db.Column(db.String(20))
    # captured at write time, never recomputed
    meal_window_start = db.Column(db.DateTime)
    meal_window_end = db.Column(db.DateTime)

    created_at = db.Column(PRECISE_DATETIME, nullable=False, default=datetime.utcnow, index=True)

    user = db.relationship("User", backref="food_entries")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "group_id": self.group_id,
            "stake_id": self.stake_id,
            "food_name": self.food_name,
            "calories": self.calories,
            "xp_earned": self.xp_earned or 0,
            "confidence": self.confidence,
            "cuisine": self.cuisine,
            "portion_size": self.portion_size,
            "ingredients": self.ingredients or [],
            "cooking_method": self.cooking_method,
            "nutrients": self.nutrients,
            "health_score": self.health_score,
            "allergens": self.allergens or [],
            "alternatives": self.alternatives,
            "image_url": self.image_url,
            "meal_type": self.meal_type,
            "meal_window_start": _iso(self.meal_window_start),
            "meal_window_end": _iso(self.meal_window_end),
            "created_at": _iso(self.created_at),
        }
