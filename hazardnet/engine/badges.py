"""
hazardnet.engine.badges — Badge Threshold Evaluation
=====================================================

Handler-registry implementation of badge unlocks.  Each badge rule names a
trigger kind; the kind maps to a pure handler that receives a
:class:`BadgeContext` and the rule's threshold.

Rules are evaluated independently, in table order (ascending point
thresholds, then Guardian), so one award may unlock several badges at once.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class BadgeTrigger(enum.StrEnum):
    POINTS_THRESHOLD = "points_threshold"
    VERIFIED_REPORTS = "verified_reports"


@dataclass(frozen=True, slots=True)
class BadgeRule:
    name: str
    trigger: BadgeTrigger
    threshold: int


@dataclass(frozen=True, slots=True)
class BadgeContext:
    """Snapshot of user state after the points delta was applied.

    Parameters
    ----------
    points : Total points including this award.
    verified_reports : Count of the user's reports with status ``verified``.
    """

    points: int = 0
    verified_reports: int = 0


# ---------------------------------------------------------------------------
# Badge table
# ---------------------------------------------------------------------------
BRONZE_REPORTER = "Bronze Reporter"
SILVER_REPORTER = "Silver Reporter"
GOLD_REPORTER = "Gold Reporter"
HERO = "Hero"
GUARDIAN = "Guardian"

BADGE_RULES: tuple[BadgeRule, ...] = (
    BadgeRule(BRONZE_REPORTER, BadgeTrigger.POINTS_THRESHOLD, 50),
    BadgeRule(SILVER_REPORTER, BadgeTrigger.POINTS_THRESHOLD, 200),
    BadgeRule(GOLD_REPORTER, BadgeTrigger.POINTS_THRESHOLD, 500),
    BadgeRule(HERO, BadgeTrigger.POINTS_THRESHOLD, 1000),
    BadgeRule(GUARDIAN, BadgeTrigger.VERIFIED_REPORTS, 10),
)


# ---------------------------------------------------------------------------
# Trigger handlers — pure functions (threshold, ctx) → bool
# ---------------------------------------------------------------------------
def _check_points(threshold: int, ctx: BadgeContext) -> bool:
    return ctx.points >= threshold


def _check_verified_reports(threshold: int, ctx: BadgeContext) -> bool:
    return ctx.verified_reports >= threshold


TRIGGER_HANDLERS: dict[str, Callable[[int, BadgeContext], bool]] = {
    BadgeTrigger.POINTS_THRESHOLD: _check_points,
    BadgeTrigger.VERIFIED_REPORTS: _check_verified_reports,
}


# ---------------------------------------------------------------------------
# Main check function
# ---------------------------------------------------------------------------
def check_badges(
    ctx: BadgeContext,
    already_earned: Iterable[str],
    rules: Iterable[BadgeRule] = BADGE_RULES,
) -> list[str]:
    """Return the badge names *ctx* qualifies for that are not yet earned.

    The result follows rule order and never repeats a name, even if a rule
    table lists the same badge twice.
    """
    earned = set(already_earned)
    newly_earned: list[str] = []

    for rule in rules:
        if rule.name in earned:
            continue
        handler = TRIGGER_HANDLERS.get(rule.trigger)
        if handler is None:
            continue
        if handler(rule.threshold, ctx):
            newly_earned.append(rule.name)
            earned.add(rule.name)
            logger.debug("Badge unlocked: %s (%s >= %d)", rule.name, rule.trigger, rule.threshold)

    return newly_earned


def points_needed_for_next(points: int, rules: Iterable[BadgeRule] = BADGE_RULES) -> int | None:
    """Points left until the next point-threshold badge, or None past Hero."""
    remaining = [
        rule.threshold - points
        for rule in rules
        if rule.trigger == BadgeTrigger.POINTS_THRESHOLD and rule.threshold > points
    ]
    return min(remaining) if remaining else None
