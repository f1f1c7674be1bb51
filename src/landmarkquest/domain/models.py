"""
Domain models (Pydantic).

These types are the contract between the visit engine, its stores, and the
API/CLI surfaces:
- geography (`Coordinate`, `Landmark`)
- persisted per-user progress (`LedgerState`)
- static achievement definitions (`BadgeRule`)
- results handed back to callers (`ScanHit`, `CommitResult`, `VisitNotification`)

Ledger documents keep the camelCase field names used by the mobile client
(`visitedLandmarks`, `monthlyPoints`, ...) so stored records stay compatible.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


BadgeCategory = Literal["explorer", "photographer", "historian", "social"]


class Coordinate(BaseModel):
    """A latitude/longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Landmark(BaseModel):
    """A place that can be visited. Detection only reads `id` and `location`."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str
    location: Coordinate
    is_preset: bool = False
    status: Literal["pending", "approved", "rejected"] = "approved"
    description: str | None = None

    @property
    def detectable(self) -> bool:
        return self.is_preset or self.status == "approved"


class LedgerState(BaseModel):
    """Per-user progress record.

    Unknown document fields (quiz scores, completed challenges, ...) are kept
    as extras so a commit writes them back untouched.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    visited_landmarks: list[str] = Field(default_factory=list)
    points: int = Field(0, ge=0)
    monthly_points: int = Field(0, ge=0)
    earned_badges: list[str] = Field(default_factory=list)
    current_streak: int = 0

    @field_validator("visited_landmarks", "earned_badges", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("points", "monthly_points", "current_streak", mode="before")
    @classmethod
    def _null_count(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("visited_landmarks", "earned_badges")
    @classmethod
    def _dedupe(cls, values: list[str]) -> list[str]:
        # Set semantics, first occurrence wins.
        return list(dict.fromkeys(values))

    @classmethod
    def from_document(cls, doc: dict[str, Any] | None) -> "LedgerState":
        if not doc:
            return cls()
        return cls.model_validate(doc)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class BadgeRule(BaseModel):
    """Static achievement definition: unlocks once `requirement` is reached."""

    id: str
    name: str = ""
    category: BadgeCategory = "explorer"
    requirement: int = Field(..., ge=1)
    points: int = Field(0, ge=0)
    description: str = ""


class BadgeProgress(BaseModel):
    """Display-oriented progress toward one badge."""

    badge_id: str
    name: str
    category: BadgeCategory
    current: int
    requirement: int
    ratio: float = Field(..., ge=0, le=1)
    unlocked: bool


class ScanHit(BaseModel):
    """One landmark within the visit radius."""

    landmark_id: str
    distance_meters: float = Field(..., ge=0)


class CommitResult(BaseModel):
    """Outcome of one `commit_visits` call, used for notifications."""

    newly_visited_ids: list[str] = Field(default_factory=list)
    points_awarded: int = 0
    newly_unlocked_badges: list[str] = Field(default_factory=list)
    points_from_visits: int = 0
    points_from_badges: int = 0
    attempts: int = 0

    @classmethod
    def empty(cls, *, attempts: int = 0) -> "CommitResult":
        return cls(attempts=attempts)


class VisitNotification(BaseModel):
    """Payload handed to the UI collaborator after a rewarding commit."""

    new_visit_count: int
    points_awarded: int
    unlocked_badges: list[str] = Field(default_factory=list)
    landmark_ids: list[str] = Field(default_factory=list)

    @property
    def headline_badge(self) -> str | None:
        return self.unlocked_badges[0] if self.unlocked_badges else None


class LeaderboardEntry(BaseModel):
    rank: int = Field(..., ge=1)
    user_id: str
    username: str = "Anonymous"
    points: int
    badges: int


class ScanRequest(BaseModel):
    """API payload for a stateless proximity scan."""

    position: Coordinate
    already_visited: list[str] = Field(default_factory=list)


class CommitRequest(BaseModel):
    """API payload for committing detected visits."""

    landmark_ids: list[str] = Field(default_factory=list)
