from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from getwork.core.normalize import coerce_age, split_skills
from getwork.schemas.jobs import JobOut

ReferralStatus = Literal["pending", "accepted", "hired", "rejected"]


class CandidateDetails(BaseModel):
    """Candidate snapshot stored as JSON on the referral row."""

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    phone: str | None = None
    age: int | None = None
    skills: list[str] = Field(default_factory=list)
    location: str | None = None
    experience: str | None = None
    email: str | None = None
    generated_user_id: str | None = None

    @field_validator("skills", mode="before")
    @classmethod
    def _split_skills(cls, value: Any) -> list[str]:
        return split_skills(value)

    @field_validator("age", mode="before")
    @classmethod
    def _coerce_age(cls, value: Any) -> int | None:
        return coerce_age(value)


class ReferralCreateRequest(BaseModel):
    job_id: str
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    age: int | str | None = None
    skills: list[str] | str | None = None
    location: str | None = None
    experience: str | None = None


class ReferredWorkerCreateRequest(ReferralCreateRequest):
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)


class ReferredWorkerCreatedOut(BaseModel):
    success: bool = True
    user_id: str


class ReferralOut(BaseModel):
    id: str
    partner_id: str
    job_id: str
    job_title: str | None = None
    organization_name: str | None = None
    candidate_name: str
    candidate_phone: str | None = None
    candidate_details: dict[str, Any] = Field(default_factory=dict)
    status: ReferralStatus
    created_at: datetime


class ReferralPatchRequest(BaseModel):
    status: ReferralStatus


class ReferralStatsOut(BaseModel):
    total: int = 0
    pending: int = 0
    points: int = 0
    badges: list[str] = Field(default_factory=list)


class ReferralDashboardOut(BaseModel):
    name: str
    role: str
    jobs: list[JobOut] = Field(default_factory=list)
    stats: ReferralStatsOut | None = None
