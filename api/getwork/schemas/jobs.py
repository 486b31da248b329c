from datetime import datetime

from pydantic import BaseModel, Field


class JobOut(BaseModel):
    id: str
    org_id: str
    title: str
    description: str | None = None
    salary_range: str | None = None
    location: str | None = None
    category: str | None = None
    organization_name: str | None = None
    created_at: datetime
    updated_at: datetime


class JobDetailOut(JobOut):
    organization_phone: str | None = None
    has_applied: bool = False


class JobCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    salary_range: str | None = None
    location: str | None = None
    category: str | None = None


class JobPatchRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    salary_range: str | None = None
    location: str | None = None
    category: str | None = None
