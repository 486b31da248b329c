from __future__ import annotations

import logging
from typing import Any

from getwork.core.auth import Principal
from getwork.core.normalize import coerce_age, coerce_text, normalize_phone, split_skills
from getwork.services.repository import RepositoryNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_NAMES = {
    "worker": "New Worker",
    "organization": "New Organization",
    "referral": "",
}


def profile_fields_from_metadata(role: str, *, email: str | None, metadata: dict[str, Any]) -> dict[str, Any]:
    """Build the first profile row for `role` from what the identity supplied at sign-up."""
    fields: dict[str, Any] = {
        "name": coerce_text(metadata.get("full_name")) or DEFAULT_PROFILE_NAMES[role],
        "email": email,
        "phone": normalize_phone(metadata.get("phone")),
    }
    if role in {"worker", "organization"}:
        fields["location"] = coerce_text(metadata.get("location"))
    if role == "worker":
        fields["age"] = coerce_age(metadata.get("age"))
        fields["skills"] = split_skills(metadata.get("skills"))
        fields["experience"] = coerce_text(metadata.get("experience"))
    return fields


async def load_or_create_profile(repository, principal: Principal, role: str) -> dict[str, Any]:
    existing = await repository.get_profile(role, principal.subject)
    if existing is not None:
        return existing

    logger.info("profile missing, provisioning role=%s user_id=%s", role, principal.subject)
    fields = profile_fields_from_metadata(role, email=principal.email, metadata=principal.metadata)
    return await repository.ensure_profile(role, principal.subject, fields)


async def require_profile_id(repository, role: str, user_id: str) -> str:
    """Row id of an existing profile; jobs reference organizations by it."""
    profile = await repository.get_profile(role, user_id)
    if profile is None:
        raise RepositoryNotFoundError(f"{role} profile not found")
    return profile["id"]
