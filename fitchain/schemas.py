# backend/fitchain/schemas.py
"""
Request schemas. Every body / query string is validated here before it
reaches a service.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

MealType = Literal["breakfast", "lunch", "dinner"]
EntryMealType = Literal["breakfast", "lunch", "dinner", "snack"]
VerificationType = Literal["worldid", "guest", "wallet"]

T = TypeVar("T", bound=BaseModel)


def parse(model: Type[T], data: Optional[Dict[str, Any]]) -> T:
    """Validate ``data`` against ``model``; raise the API's ValidationError on failure."""
    try:
        return model.model_validate(data or {})
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "body"
        raise ValidationError(f"{field}: {first.get('msg', 'invalid value')}")


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class _Query(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ============================================================================
# Users
# ============================================================================

class CreateUserRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    wallet_address: Optional[str] = Field(None, max_length=100)
    nullifier_hash: Optional[str] = Field(None, max_length=100)
    verification_type: VerificationType = "guest"

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("username is required")
        return v


class UpdateUserStatsRequest(BaseModel):
    user_id: int
    total_calories: Optional[int] = Field(None, ge=0)
    total_xp: Optional[int] = Field(None, ge=0)
    streak: Optional[int] = Field(None, ge=0)
    level: Optional[int] = Field(None, ge=1)
    total_entries: Optional[int] = Field(None, ge=0)


class UserSearchQuery(_Query):
    q: str = Field(..., min_length=1)
    limit: int = Field(10, ge=1, le=50)
    current_user_id: Optional[int] = Field(None, alias="currentUserId")


# ============================================================================
# Groups
# ============================================================================

class CreateGroupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    creator_id: int
    is_private: bool = True
    max_members: int = Field(10, ge=1, le=1000)


class GroupQuery(_Query):
    group_id: Optional[int] = Field(None, alias="groupId")
    user_id: Optional[int] = Field(None, alias="userId")

    @model_validator(mode="after")
    def require_one(self):
        if self.group_id is None and self.user_id is None:
            raise ValueError("User ID or Group ID is required")
        return self


class JoinGroupRequest(BaseModel):
    group_id: int
    user_id: int


class LeaveGroupQuery(_Query):
    group_id: int = Field(..., alias="groupId")
    user_id: int = Field(..., alias="userId")


# ============================================================================
# Stakes
# ============================================================================

class CreateStakeRequest(BaseModel):
    group_id: int
    creator_id: int
    competition_type: Literal["daily", "meal"]
    meal_type: Optional[MealType] = None
    stake_amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    start_time: datetime

    @field_validator("start_time")
    @classmethod
    def start_as_naive_utc(cls, v: datetime) -> datetime:
        return _naive_utc(v)

    @model_validator(mode="after")
    def meal_needs_type(self):
        if self.competition_type == "meal" and self.meal_type is None:
            raise ValueError("meal_type is required for meal competitions")
        return self


class StakeQuery(_Query):
    stake_id: Optional[int] = Field(None, alias="stakeId")
    group_id: Optional[int] = Field(None, alias="groupId")
    user_id: Optional[int] = Field(None, alias="userId")
    status: Literal["active", "completed", "cancelled"] = "active"


class JoinStakeRequest(BaseModel):
    stake_id: int
    user_id: int
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)


class LeaveStakeQuery(_Query):
    stake_id: int = Field(..., alias="stakeId")
    user_id: int = Field(..., alias="userId")


class FinalizeStakeRequest(BaseModel):
    stake_id: int


# ============================================================================
# Leaderboards
# ============================================================================

class LeaderboardQuery(_Query):
    group_id: Optional[int] = Field(None, alias="groupId")
    stake_id: Optional[int] = Field(None, alias="stakeId")
    type: Literal["daily", "weekly", "alltime"] = "daily"
    on_date: Optional[date] = Field(None, alias="date")

    @model_validator(mode="after")
    def require_one(self):
        if self.group_id is None and self.stake_id is None:
            raise ValueError("Group ID or Stake ID is required")
        return self


# ============================================================================
# Meal windows
# ============================================================================

class MealWindowQuery(_Query):
    user_id: Optional[int] = Field(None, alias="userId")
    stake_id: Optional[int] = Field(None, alias="stakeId")
    status: bool = False


class UpdateMealWindowRequest(BaseModel):
    meal_type: MealType
    start_hour: int = Field(..., ge=0, le=23)
    start_minute: int = Field(0, ge=0, le=59)
    end_hour: int = Field(..., ge=0, le=23)
    end_minute: int = Field(0, ge=0, le=59)
    min_images: int = Field(2, ge=1, le=50)


# ============================================================================
# Food entries / analysis
# ============================================================================

class CreateFoodEntryRequest(BaseModel):
    user_id: int
    group_id: Optional[int] = None
    stake_id: Optional[int] = None
    food_name: str = Field(..., min_length=1, max_length=200)
    calories: int = Field(..., ge=0)
    xp_earned: Optional[int] = Field(None, ge=0)
    confidence: Optional[str] = Field(None, max_length=20)
    cuisine: Optional[str] = Field(None, max_length=50)
    portion_size: Optional[str] = None
    ingredients: Optional[List[str]] = None
    cooking_method: Optional[str] = Field(None, max_length=50)
    nutrients: Optional[Dict[str, Any]] = None
    health_score: Optional[int] = Field(None, ge=0, le=100)
    allergens: Optional[List[str]] = None
    alternatives: Optional[str] = None
    image_url: str = Field(..., min_length=1)
    meal_type: Optional[EntryMealType] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def confidence_as_text(cls, v):
        # analysis returns a number, older clients send "high"/"low"
        return None if v is None else str(v)


class FoodEntryQuery(_Query):
    user_id: Optional[int] = Field(None, alias="userId")
    group_id: Optional[int] = Field(None, alias="groupId")
    stake_id: Optional[int] = Field(None, alias="stakeId")
    meal_type: Optional[EntryMealType] = Field(None, alias="mealType")
    on_date: Optional[date] = Field(None, alias="date")
    limit: int = Field(50, ge=1, le=200)


class AnalyzeFoodRequest(BaseModel):
    image: str = Field(..., min_length=1)


class ProofPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    proof: str = Field(..., min_length=1)
    merkle_root: str = Field(..., min_length=1)
    nullifier_hash: str = Field(..., min_length=1)
    verification_level: Optional[str] = None


class VerifyRequest(BaseModel):
    payload: ProofPayload
    action: Optional[str] = Field(None, min_length=1, max_length=99)
    signal: Optional[str] = Field(None, max_length=99)
    username: Optional[str] = Field(None, min_length=1, max_length=50)
