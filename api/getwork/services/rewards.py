from collections.abc import Iterable
from typing import Any

POINTS_PER_SUCCESS = 10
SUCCESS_STATUSES = frozenset({"hired", "accepted"})
TOP_REFERRER_MIN_SUCCESSES = 5
ACTIVE_SCOUT_MIN_TOTAL = 10


def compute_referral_stats(statuses: Iterable[str]) -> dict[str, Any]:
    """Recomputed from every referral row on each view; nothing is stored."""
    total = 0
    pending = 0
    successes = 0
    for status in statuses:
        total += 1
        if status == "pending":
            pending += 1
        elif status in SUCCESS_STATUSES:
            successes += 1

    badges: list[str] = []
    if successes >= TOP_REFERRER_MIN_SUCCESSES:
        badges.append("Top Referrer")
    if total >= ACTIVE_SCOUT_MIN_TOTAL:
        badges.append("Active Scout")

    return {
        "total": total,
        "pending": pending,
        "points": successes * POINTS_PER_SUCCESS,
        "badges": badges,
    }
