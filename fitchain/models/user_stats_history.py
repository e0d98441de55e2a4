# backend/fitchain/models/user_stats_history.py
from datetime import datetime
from .. import db


class UserStatsHistory(db.Model):
    __tablename__ = "user_stats_history"
    __table_args__ = (
        db.UniqueConstraint("user_id", "stat_date", name="uq_user_stats_history_user_date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    stat_date = db.Column(db.Date, nullable=False)
    calories = db.Column(db.Integer, default=0, nullable=False)
    xp_earned = db.Column(db.Integer, default=0, nullable=False)
    entries_count = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship("User", backref="stats_history")
