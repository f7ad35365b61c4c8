"""Pydantic models used throughout the geo service.

Wire format is camelCase (the mini-app contract); Python attributes are
snake_case. Documents read from MongoDB are validated through these models so
partially populated records resolve to explicit defaults in one place.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Zone = Literal["village", "suburb", "city_center"]
ZONES: tuple[str, ...] = ("village", "suburb", "city_center")

# Most pressing first
URGENCY_ORDER: tuple[str, ...] = ("urgent", "high", "normal", "low")


class CamelModel(BaseModel):
    """Base model accepting both camelCase and snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class GeoPoint(CamelModel):
    """A validated coordinate pair."""

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class ZoneClassification(CamelModel):
    """Outcome of one zone classification; immutable once produced."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    zone: Zone
    confidence: float = Field(ge=0, le=1)
    source: Literal["classifier", "manual", "fallback"] = "classifier"
    scores: Dict[str, float] = Field(default_factory=dict)
    diagnostics: Dict[str, Any] = Field(default_factory=dict)


class BlockFilter(CamelModel):
    """Client-side quick filter chip shown above a block's carousel."""

    id: str
    label: str
    icon: str
    keywords: List[str] = Field(default_factory=list)


class Block(CamelModel):
    """One rendered unit of the home feed."""

    type: Literal["banners", "horizontal_list", "demand_chips", "banner_card"]
    id: str
    title: str
    subtitle: Optional[str] = None
    icon: Optional[str] = None
    accent_color: Optional[str] = None
    link: Optional[str] = None
    gradient: Optional[List[str]] = None
    instruction: Optional[str] = None
    items: List[Dict[str, Any]] = Field(default_factory=list)
    filters: Optional[List[BlockFilter]] = None


class FeedMeta(CamelModel):
    generated_at: str
    location: Dict[str, Optional[float]]
    radius_km: float
    diagnostics: Dict[str, Any] = Field(default_factory=dict)


class HomeFeedResult(CamelModel):
    """Assembled home feed; cached per geohash bucket and zone."""

    zone: Zone
    confidence: float
    blocks: List[Block]
    meta: FeedMeta


class Location(CamelModel):
    """Location sub-document of workers and orders."""

    lat: Optional[float] = None
    lng: Optional[float] = None
    city: Optional[str] = None
    address: Optional[str] = None
    geo: Optional[Dict[str, Any]] = None

    def coordinates(self) -> Optional[tuple[float, float]]:
        if self.lat is None or self.lng is None:
            return None
        return self.lat, self.lng


class _Document(CamelModel):
    """Shared handling of Mongo's `_id` and unknown fields."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("_id", "id"))

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        return str(value)


class Worker(_Document):
    """A service provider in the "hire a worker" vertical."""

    name: str = ""
    avatar: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    location: Optional[Location] = None
    rating: float = Field(default=0.0, ge=0, le=5)
    reviews_count: int = 0
    completed_orders_count: int = 0
    active_orders_count: int = 0
    response_rate: Optional[float] = Field(default=None, ge=0, le=100)
    avg_response_time_minutes: Optional[float] = None
    experience_years: float = 0.0
    is_verified: bool = False
    is_pro: bool = False
    is_team: bool = False
    team_size: int = 1
    status: str = "active"
    last_active_at: Optional[datetime] = None

    @field_validator("rating", "experience_years", mode="before")
    @classmethod
    def _none_to_zero(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @field_validator("reviews_count", "completed_orders_count", "active_orders_count", mode="before")
    @classmethod
    def _none_to_zero_int(cls, value: Any) -> Any:
        return 0 if value is None else value

    def coordinates(self) -> Optional[tuple[float, float]]:
        return self.location.coordinates() if self.location else None


class WorkerOrder(_Document):
    """A customer's request for work."""

    title: str = ""
    category: str
    location: Optional[Location] = None
    status: Literal["draft", "open", "in_progress", "completed", "cancelled", "expired"] = "open"
    urgency: Literal["low", "normal", "high", "urgent"] = "normal"
    budget_from: Optional[float] = None
    budget_to: Optional[float] = None
    created_at: Optional[datetime] = None

    def coordinates(self) -> Optional[tuple[float, float]]:
        return self.location.coordinates() if self.location else None


class MatchScore(CamelModel):
    """A worker scored against one specific order; never persisted."""

    worker: Worker
    score: float = Field(ge=0, le=1)
    distance_km: Optional[float] = None


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (pymongo default) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
