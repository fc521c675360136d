"""
hazardnet.engine.points — Point Values and Award Results
=========================================================

Fixed point values per action and the result envelope returned by every
award.  Values are product constants, not runtime settings.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from hazardnet.database.models import PointsAction

__all__ = [
    "AwardResult",
    "COMMENT_POINTS",
    "REPORT_VERIFIED_POINTS",
    "SUBMIT_REPORT_POINTS",
    "VOTE_POINTS",
    "composite_key",
    "vote_key",
]

SUBMIT_REPORT_POINTS = 10  # paid out when the report is verified
REPORT_VERIFIED_POINTS = 20
VOTE_POINTS = 2
COMMENT_POINTS = 5


@dataclass
class AwardResult:
    """Outcome of a single ``award_points`` call."""

    user_id: int
    points_awarded: int = 0
    total_points: int = 0
    badges: list[str] = field(default_factory=list)
    new_badges: list[str] = field(default_factory=list)
    duplicate: bool = False


# ---------------------------------------------------------------------------
# Idempotency keys
# ---------------------------------------------------------------------------
def composite_key(report_id: int, action: PointsAction) -> str:
    """Key for one step of the verification award on *report_id*."""
    return f"verify:{report_id}:{action.value}"


def vote_key(report_id: int, voter_id: int, direction: str) -> str:
    """Key for the vote award: once per (report, voter, direction)."""
    return f"vote:{report_id}:{voter_id}:{direction}"
