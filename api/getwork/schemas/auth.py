from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SignupRole = Literal["worker", "organization", "referral"]


class LoginRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    phone: str | None = None
    role: SignupRole = "worker"
    location: str | None = None
    age: int | str | None = None
    skills: list[str] | str | None = None


class PasswordUpdateRequest(BaseModel):
    password: str
    confirm: str


class SessionOut(BaseModel):
    user_id: str
    email: str | None = None
    role: str | None = None
    redirect_to: str


class MessageOut(BaseModel):
    message: str


class BackendEnvelope(BaseModel):
    """Documented shape of the legacy REST backend reply. Replies are relayed as sent."""

    model_config = ConfigDict(extra="allow")

    success: Any = None
    message: Any = None
    token: Any = None
    role: Any = None
    name: Any = None
    user: Any = None
