"""Challenge handling and human-like interaction helpers."""

from .challenge_handler import (
    BLOCKED_TEXT_MARKERS,
    BLOCKING_STATUS_CODES,
    CHALLENGE_RULES,
    CLEARANCE_MARKERS,
    PROCEED_SELECTORS,
    ChallengeDetection,
    ChallengeKind,
    ChallengeOutcome,
    ChallengeRule,
    ChallengeState,
    PageSnapshot,
    WafChallengeHandler,
    WafTimings,
)
from .human_simulator import (
    HumanSimulator,
    HumanSimulatorConfig,
    create_human_simulator,
)

__all__ = [
    "BLOCKED_TEXT_MARKERS",
    "BLOCKING_STATUS_CODES",
    "CHALLENGE_RULES",
    "CLEARANCE_MARKERS",
    "PROCEED_SELECTORS",
    "ChallengeDetection",
    "ChallengeKind",
    "ChallengeOutcome",
    "ChallengeRule",
    "ChallengeState",
    "PageSnapshot",
    "WafChallengeHandler",
    "WafTimings",
    "HumanSimulator",
    "HumanSimulatorConfig",
    "create_human_simulator",
]
