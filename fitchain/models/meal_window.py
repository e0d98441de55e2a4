# backend/fitchain/models/meal_window.py
from .. import db

MEAL_TYPES = ("breakfast", "lunch", "dinner")

# seeded on first start
DEFAULT_MEAL_WINDOWS = (
    {"meal_type": "breakfast", "start_hour": 8, "end_hour": 10, "min_images": 2},
    {"meal_type": "lunch", "start_hour": 14, "end_hour": 16, "min_images": 2},
    {"meal_type": "dinner", "start_hour": 20, "end_hour": 22, "min_images": 2},
)


class MealWindow(db.Model):
    __tablename__ = "meal_windows"

    id = db.Column(db.Integer, primary_key=True)
    meal_type = db.Column(db.String(20), nullable=False)
    start_hour = db.Column(db.Integer, nullable=False)  # 0-23
    start_minute = db.Column(db.Integer, nullable=False, default=0)
    end_hour = db.Column(db.Integer, nullable=False)  # 0-23
    end_minute = db.Column(db.Integer, nullable=False, default=0)
    min_images = db.Column(db.Integer, nullable=False, default=2)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self):
        return {
            "id": self.id,
            "meal_type": self.meal_type,
            "start_hour": self.start_hour,
            "start_minute": self.start_minute or 0,
            "end_hour": self.end_hour,
            "end_minute": self.end_minute or 0,
            "min_images": self.min_images,
            "is_active": self.is_active,
        }
