from typing import Any


def normalize_phone(raw: Any) -> str | None:
    """Trim and drop leading zeros the way sign-up forms store phone numbers."""
    if raw is None:
        return None
    phone = str(raw).strip().lstrip("0")
    return phone or None


def split_skills(raw: Any) -> list[str]:
    """Accept either a comma separated string or a list of skills."""
    if raw is None:
        return []
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        items = [item for item in raw if isinstance(item, str)]
    else:
        return []
    return [item.strip() for item in items if item.strip()]


def coerce_age(raw: Any) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str) and not raw.strip():
        return None
    try:
        age = int(raw)
    except (TypeError, ValueError):
        return None
    return age if age > 0 else None


def coerce_text(raw: Any) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        stripped = raw.strip()
        return stripped or None
    return str(raw)
