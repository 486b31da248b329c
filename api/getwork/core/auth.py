from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    WORKER = "worker"
    ORGANIZATION = "organization"
    REFERRAL = "referral"


ROLE_SCOPES: dict[str | None, set[str]] = {
    Role.WORKER.value: {
        "jobs:read",
        "applications:write",
        "inbox:read",
        "inbox:write",
        "referrals:read",
        "referrals:write",
    },
    Role.ORGANIZATION.value: {
        "jobs:read",
        "jobs:write",
        "applications:review",
        "inbox:read",
        "inbox:write",
        "referrals:review",
    },
    Role.REFERRAL.value: {"jobs:read", "referrals:read", "referrals:write", "inbox:read", "inbox:write"},
    None: {"jobs:read", "inbox:read"},
}

DASHBOARD_PATHS: dict[str | None, str] = {
    Role.ORGANIZATION.value: "/organization",
    Role.REFERRAL.value: "/referral",
}


@dataclass(slots=True)
class Principal:
    subject: str
    role: str | None
    scopes: set[str]
    email: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def require_scopes(self, required: set[str]) -> None:
        missing = required - self.scopes
        if missing:
            raise PermissionError(f"missing required scopes: {sorted(missing)}")

    def require_role(self, role: Role) -> None:
        """Unresolved identities pass; a different resolved role does not."""
        if self.role and self.role != role.value:
            raise PermissionError(f"Access denied (not {_with_article(role.value)})")


def parse_role(value: Any) -> str | None:
    if isinstance(value, str) and value in {role.value for role in Role}:
        return value
    return None


def dashboard_path(role: str | None) -> str:
    return DASHBOARD_PATHS.get(role, "/worker")


def _with_article(word: str) -> str:
    return f"an {word}" if word[:1] in "aeiou" else f"a {word}"
