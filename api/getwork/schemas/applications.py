from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

ApplicationStatus = Literal["pending", "accepted", "rejected"]
ApplicationDecision = Literal["accepted", "rejected"]


class ApplicantOut(BaseModel):
    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    skills: list[str] = Field(default_factory=list)


class ApplicationOut(BaseModel):
    id: str
    job_id: str
    job_title: str
    organization_name: str | None = None
    worker_id: str
    status: ApplicationStatus
    worker: ApplicantOut | None = None
    created_at: datetime


class ApplicationPatchRequest(BaseModel):
    status: ApplicationDecision
