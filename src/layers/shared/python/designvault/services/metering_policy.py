"""Interaction metering policy.

Decides whether a visitor may run another AI operation, must first leave
contact details, or has hit the ceiling. Pure functions only; the caller
supplies the aggregate count across all of the visitor's sessions.
"""

import os
from dataclasses import dataclass
from enum import Enum

DEFAULT_MAX_FREE = int(os.environ.get("MAX_FREE_INTERACTIONS", "1"))
DEFAULT_CAPTURE_BONUS = int(os.environ.get("CAPTURE_BONUS_INTERACTIONS", "3"))


class MeteringDecision(str, Enum):
    """Outcome of a metering check."""

    ALLOW = "allow"
    REQUIRE_CAPTURE = "require_capture"
    DENY = "deny"


@dataclass(frozen=True)
class MeteringConfig:
    """Quota settings for one builder site.

    Attributes:
        max_free: Operations allowed before contact capture is demanded.
        capture_bonus: Extra operations unlocked by capturing.
    """

    max_free: int = DEFAULT_MAX_FREE
    capture_bonus: int = DEFAULT_CAPTURE_BONUS

    @property
    def hard_limit(self) -> int:
        """Total ceiling regardless of capture state."""
        return self.max_free + self.capture_bonus


def decide(
    aggregate_count: int,
    is_captured: bool,
    max_free: int,
    hard_limit: int,
) -> MeteringDecision:
    """Decide whether the next AI operation may run.

    The capture gate is checked before the hard limit so that an uncaptured
    visitor always sees the unlock prompt first. Capturing grants quota up
    to hard_limit, never beyond it, even when the visitor captured after
    spending their allowance on another session.

    Args:
        aggregate_count: Operations already used across all sessions.
        is_captured: Whether the visitor has left contact details.
        max_free: Free operations before capture.
        hard_limit: Absolute ceiling.

    Returns:
        The metering decision.
    """
    if not is_captured and aggregate_count >= max_free:
        return MeteringDecision.REQUIRE_CAPTURE
    if aggregate_count >= hard_limit:
        return MeteringDecision.DENY
    return MeteringDecision.ALLOW


def decide_for(aggregate_count: int, is_captured: bool, config: MeteringConfig) -> MeteringDecision:
    """Decide using a MeteringConfig."""
    return decide(aggregate_count, is_captured, config.max_free, config.hard_limit)


def compute_remaining(count: int, is_captured: bool, config: MeteringConfig) -> int:
    """Operations left before the next gate, as shown by the widget.

    Args:
        count: Aggregate count after the current operation.
        is_captured: Whether the visitor has left contact details.
        config: Quota settings.

    Returns:
        Remaining operations, never negative.
    """
    if is_captured:
        return max(0, config.hard_limit - count)
    return max(0, config.max_free - count)
