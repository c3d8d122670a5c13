"""Data models for jobs, applications and derived review data."""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any

JOB_OPEN = "open"
JOB_CLOSED = "closed"

PENDING = "pending"
REVIEWING = "reviewing"
SELECTED = "selected"
REJECTED = "rejected"

APPLICATION_STATUSES: tuple[str, ...] = (PENDING, REVIEWING, SELECTED, REJECTED)
TERMINAL_STATUSES: frozenset[str] = frozenset({SELECTED, REJECTED})


@dataclass
class Session:
    access_token: str
    user_id: str


@dataclass
class Job:
    id: str
    title: str
    description: str
    requirements: str = ""
    status: str = JOB_OPEN
    created_at: str | None = None


@dataclass
class AIReview:
    match_score: float
    matching_keywords: list[str] = field(default_factory=list)
    missing_keywords: list[str] = field(default_factory=list)
    usp: list[str] = field(default_factory=list)
    analysis: str = ""
    recommendation: str = ""

    def __post_init__(self) -> None:
        if not 0 <= self.match_score <= 100:
            raise ValueError(f"match_score must be within 0-100, got {self.match_score}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AIReview":
        """Build from loosely-typed model output, clamping the score into range."""
        try:
            score = float(data.get("match_score") or 0)
        except (TypeError, ValueError):
            score = 0.0
        if not math.isfinite(score):
            score = 0.0
        return cls(
            match_score=round(min(max(score, 0.0), 100.0), 1),
            matching_keywords=_str_list(data.get("matching_keywords")),
            missing_keywords=_str_list(data.get("missing_keywords")),
            usp=_str_list(data.get("usp")),
            analysis=str(data.get("analysis") or ""),
            recommendation=str(data.get("recommendation") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Application:
    id: str
    job_id: str
    candidate_id: str
    resume_text: str
    cover_letter: str | None = None
    status: str = PENDING
    match_score: float | None = None
    ai_review: AIReview | None = None
    candidate_name: str = ""
    candidate_email: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def score(self) -> float | None:
        """Persisted score, falling back to the one inside the review."""
        if self.match_score is not None:
            return self.match_score
        return self.ai_review.match_score if self.ai_review else None


@dataclass
class StructuredResume:
    summary: str = ""
    skills: list[str] = field(default_factory=list)
    experience: list[str] = field(default_factory=list)
    education: list[str] = field(default_factory=list)
    certifications: list[str] = field(default_factory=list)
    contact: dict[str, str] = field(default_factory=dict)
    raw_text: str | None = None

    @property
    def degraded(self) -> bool:
        return self.raw_text is not None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ReviewOutcome:
    application_id: str
    review: AIReview | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _str_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v).strip() for v in value if str(v).strip()]
