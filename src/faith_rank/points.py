"""Points calculation for faith-rank.

Pure functions that convert an action kind and magnitude into a point delta.
All results are integers (math.floor for fractional magnitudes).
"""

from __future__ import annotations

import logging
import math
from enum import Enum

from faith_rank.errors import InvalidArgument

logger = logging.getLogger(__name__)

# Points per unit of magnitude
POINTS_PER_ACTION: dict[str, int] = {
    "prayer_minute": 2,
    "verse_read": 5,
    "prayer_request": 10,
    "community_prayer": 8,
    "challenge_complete": 25,
    "daily_streak": 15,
    "connection_made": 20,
    "event_attend": 30,
    "testimony_share": 40,
    "mentor_session": 50,
}

# Unrecognized action kinds still earn a nominal point under the permissive policy.
DEFAULT_MULTIPLIER = 1


class UnknownActionPolicy(str, Enum):
    """What to do with an action kind missing from POINTS_PER_ACTION."""

    PERMISSIVE = "permissive"  # award DEFAULT_MULTIPLIER per unit
    STRICT = "strict"  # raise InvalidArgument


def validate_magnitude(magnitude: float) -> float:
    """Reject negative, NaN and infinite magnitudes."""
    if isinstance(magnitude, bool) or not isinstance(magnitude, (int, float)):
        raise InvalidArgument(f"magnitude must be a number, got {magnitude!r}")
    if not math.isfinite(magnitude) or magnitude < 0:
        raise InvalidArgument(f"magnitude must be a finite number >= 0, got {magnitude!r}")
    return magnitude


def get_multiplier(
    action_kind: str, policy: UnknownActionPolicy = UnknownActionPolicy.PERMISSIVE
) -> int:
    """Return the per-unit points for an action kind.

    Under PERMISSIVE an unknown kind returns DEFAULT_MULTIPLIER; under STRICT
    it raises InvalidArgument.
    """
    if not isinstance(action_kind, str) or not action_kind:
        raise InvalidArgument(f"action kind must be a non-empty string, got {action_kind!r}")
    if action_kind in POINTS_PER_ACTION:
        return POINTS_PER_ACTION[action_kind]
    if UnknownActionPolicy(policy) is UnknownActionPolicy.STRICT:
        raise InvalidArgument(f"unknown action kind {action_kind!r}")
    logger.debug("Unknown action kind %r, awarding default multiplier", action_kind)
    return DEFAULT_MULTIPLIER


def compute_points(
    action_kind: str,
    magnitude: float = 1,
    policy: UnknownActionPolicy = UnknownActionPolicy.PERMISSIVE,
) -> int:
    """Points for one action: floor(multiplier * magnitude).

    E.g., ("prayer_minute", 10) -> 20, ("verse_read", 1) -> 5, ("unknown", 3) -> 3.
    """
    magnitude = validate_magnitude(magnitude)
    multiplier = get_multiplier(action_kind, policy)
    return math.floor(multiplier * magnitude)
