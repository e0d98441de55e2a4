# backend/fitchain/leveling.py
"""
XP / level / streak rules for food tracking.

Levels are a fixed lookup table keyed on total XP. XP for a single entry is a
small base derived from calories, scaled by the user's streak multiplier and a
bonus for "healthy" food names.
"""
from datetime import date
from typing import Any, Dict, List, Optional

BASE_ENTRY_XP = 10
CALORIES_PER_XP = 50

FOOD_TRACKING_LEVELS: List[Dict[str, Any]] = [
    {"level": 1, "title": "Calorie Curious", "min_xp": 0},
    {"level": 2, "title": "Portion Pioneer", "min_xp": 500},
    {"level": 3, "title": "Macro Mapper", "min_xp": 1200},
    {"level": 4, "title": "Nutrition Navigator", "min_xp": 2500},
    {"level": 5, "title": "Calorie Calculator", "min_xp": 5000},
    {"level": 6, "title": "Diet Detective", "min_xp": 10000},
    {"level": 7, "title": "Wellness Warrior", "min_xp": 20000},
    {"level": 8, "title": "Nutrition Ninja", "min_xp": 40000},
    {"level": 9, "title": "Food Sage", "min_xp": 80000},
    {"level": 10, "title": "Calorie Conqueror", "min_xp": 160000},
]

# (minimum streak days, multiplier), highest first
STREAK_MULTIPLIERS = ((30, 2.0), (14, 1.7), (7, 1.5), (3, 1.2))

HEALTHY_FOOD_WORDS = ("salad", "vegetable", "fruit")
HEALTHY_COOKING_WORDS = ("grilled", "steamed", "baked")


def get_user_level(total_xp: int) -> Dict[str, Any]:
    xp = max(0, int(total_xp or 0))
    current = FOOD_TRACKING_LEVELS[0]
    for lvl in FOOD_TRACKING_LEVELS:
        if xp >= lvl["min_xp"]:
            current = lvl
    return current


def compute_level(total_xp: int) -> int:
    return get_user_level(total_xp)["level"]


def get_next_level(level: int) -> Optional[Dict[str, Any]]:
    if level >= len(FOOD_TRACKING_LEVELS):
        return None
    return FOOD_TRACKING_LEVELS[max(level, 1)]


def get_xp_progress(total_xp: int) -> Dict[str, Any]:
    """
    Returns:
    {
      "current_level": {...},
      "next_level": {...} | None,
      "progress_xp": 300,
      "needed_xp": 200,
      "progress_percentage": 60.0
    }
    """
    xp = max(0, int(total_xp or 0))
    current = get_user_level(xp)
    nxt = get_next_level(current["level"])

    progress_xp = xp - current["min_xp"]
    if nxt is None:
        return {
            "current_level": current,
            "next_level": None,
            "progress_xp": progress_xp,
            "needed_xp": 0,
            "progress_percentage": 100.0,
        }

    span = nxt["min_xp"] - current["min_xp"]
    return {
        "current_level": current,
        "next_level": nxt,
        "progress_xp": progress_xp,
        "needed_xp": nxt["min_xp"] - xp,
        "progress_percentage": min(100.0, round(progress_xp * 100.0 / span, 2)),
    }


def calculate_streak_multiplier(streak: int) -> float:
    streak = int(streak or 0)
    for min_days, multiplier in STREAK_MULTIPLIERS:
        if streak >= min_days:
            return multiplier
    return 1.0


def get_category_bonus(food_name: str) -> float:
    name = (food_name or "").lower()
    if any(word in name for word in HEALTHY_FOOD_WORDS):
        return 1.2
    if any(word in name for word in HEALTHY_COOKING_WORDS):
        return 1.1
    return 1.0


def compute_entry_xp(calories: int, streak: int, food_name: str) -> int:
    base = BASE_ENTRY_XP + max(0, int(calories or 0)) // CALORIES_PER_XP
    return int(base * calculate_streak_multiplier(streak) * get_category_bonus(food_name))


def next_streak(current_streak: int, last_entry_date: Optional[date], today: date) -> int:
    # same day keeps the streak, consecutive day extends it, any gap restarts at 1
    if last_entry_date is None:
        return 1
    delta = (today - last_entry_date).days
    if delta <= 0:
        return max(1, int(current_streak or 0))
    if delta == 1:
        return int(current_streak or 0) + 1
    return 1


def get_achievements(total_xp: int, streak: int, total_entries: int) -> List[str]:
    achievements = []

    if total_xp >= 1000:
        achievements.append("First Thousand")
    if total_xp >= 10000:
        achievements.append("XP Diamond")
    if total_xp >= 50000:
        achievements.append("XP Superstar")

    if streak >= 7:
        achievements.append("Week Warrior")
    if streak >= 30:
        achievements.append("Month Master")
    if streak >= 100:
        achievements.append("Century Champion")

    if total_entries >= 50:
        achievements.append("Snap Master")
    if total_entries >= 200:
        achievements.append("Tracking Pro")
    if total_entries >= 1000:
        achievements.append("Calorie Legend")

    return achievements
