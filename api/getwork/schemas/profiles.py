from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from getwork.core.normalize import split_skills


class WorkerOut(BaseModel):
    id: str
    user_id: str
    name: str
    email: str | None = None
    phone: str | None = None
    age: int | None = None
    skills: list[str] = Field(default_factory=list)
    location: str | None = None
    experience: str | None = None
    verified: bool = False
    created_at: datetime


class OrganizationOut(BaseModel):
    id: str
    user_id: str
    name: str
    email: str | None = None
    phone: str | None = None
    location: str | None = None
    verified: bool = False
    created_at: datetime


class ReferralPartnerOut(BaseModel):
    id: str
    user_id: str
    name: str
    email: str | None = None
    phone: str | None = None
    created_at: datetime


class WorkerPatchRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    age: int | None = Field(default=None, gt=0)
    skills: list[str] | None = None
    location: str | None = None

    @field_validator("skills", mode="before")
    @classmethod
    def _split_skills(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        return split_skills(value)

    @field_validator("name", mode="before")
    @classmethod
    def _name_cannot_be_cleared(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("name cannot be empty")
        return value
