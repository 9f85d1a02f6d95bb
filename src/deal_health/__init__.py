"""Deal health scoring and predictive risk engine.

Converts a raw opportunity record into a composite health score, letter
grade, risk level, forward trajectory, benchmark comparison and prioritized
remediation plan. Pure, deterministic rule-based arithmetic with an
injectable scoring policy.

Exports:
    analyze_deal_health: Single-call entry point.
    DealHealthEngine: Reusable engine bound to a HealthScoringPolicy.
    DealHealthValidationError: Raised for missing or malformed input.
    HealthScoringPolicy: All weights, bands and placeholder constants.
"""

from src.deal_health.engine import (
    DealHealthEngine,
    DealHealthValidationError,
    analyze_deal_health,
)
from src.deal_health.policy import HealthScoringPolicy

__all__ = [
    "DealHealthEngine",
    "DealHealthValidationError",
    "HealthScoringPolicy",
    "analyze_deal_health",
]
