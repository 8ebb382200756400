"""
Anti-bot challenge detection and bypass.

This module recognises WAF and bot-challenge interstitials (firewall vendor
pages, JS challenges, CAPTCHAs, press-and-hold and click-to-proceed prompts)
and tries to get past them without human help.

Detection is a declarative rule table matched against one snapshot of the
page's body text and markup. New signatures are added to CHALLENGE_RULES;
the control flow in WafChallengeHandler does not change.

State machine:
    UNKNOWN -> DETECTING -> {NOT_CHALLENGED, CHALLENGE_DETECTED}
    CHALLENGE_DETECTED -> BYPASS_ATTEMPTED -> {BYPASSED, STILL_BLOCKED}
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional

from linkscrape.extraction.runtime import ExtractionScript, evaluate_script
from linkscrape.utils.human_simulator import HumanSimulator, HumanSimulatorConfig

logger = logging.getLogger(__name__)


class ChallengeState(str, Enum):
    UNKNOWN = "unknown"
    DETECTING = "detecting"
    NOT_CHALLENGED = "not_challenged"
    CHALLENGE_DETECTED = "challenge_detected"
    BYPASS_ATTEMPTED = "bypass_attempted"
    BYPASSED = "bypassed"
    STILL_BLOCKED = "still_blocked"


class ChallengeKind(str, Enum):
    FIREWALL = "firewall"
    JS_CHALLENGE = "js_challenge"
    CAPTCHA = "captcha"
    PRESS_AND_HOLD = "press_and_hold"
    CLICK_TO_PROCEED = "click_to_proceed"


# Kinds handled by pressing a proceed control
INTERACTIVE_KINDS = frozenset({
    ChallengeKind.FIREWALL,
    ChallengeKind.PRESS_AND_HOLD,
    ChallengeKind.CLICK_TO_PROCEED,
})


@dataclass(frozen=True)
class ChallengeRule:
    """A page signature and what it means."""
    pattern: str
    label: str
    source: str  # "text" (body innerText) or "html" (document outerHTML)
    kind: ChallengeKind

    def matches(self, snapshot: "PageSnapshot") -> bool:
        haystack = snapshot.text if self.source == "text" else snapshot.html
        return self.pattern in haystack


# =============================================================================
# Challenge Signatures
# =============================================================================

CHALLENGE_RULES = (
    # Sucuri
    ChallengeRule("sucuri.net", "sucuri", "html", ChallengeKind.FIREWALL),
    ChallengeRule("Website Firewall", "sucuri", "text", ChallengeKind.FIREWALL),
    ChallengeRule("Sucuri WebSite Firewall", "sucuri", "text", ChallengeKind.FIREWALL),

    # Cloudflare
    ChallengeRule("cf-browser-verification", "cloudflare", "html", ChallengeKind.JS_CHALLENGE),
    ChallengeRule("cf_chl_opt", "cloudflare", "html", ChallengeKind.JS_CHALLENGE),
    ChallengeRule("Checking your browser", "cloudflare", "text", ChallengeKind.JS_CHALLENGE),

    # DDoS-Guard
    ChallengeRule("ddos-guard", "ddos_guard", "html", ChallengeKind.JS_CHALLENGE),
    ChallengeRule("DDoS protection", "ddos_guard", "text", ChallengeKind.JS_CHALLENGE),

    # CAPTCHA widgets
    ChallengeRule("cf-turnstile", "captcha", "html", ChallengeKind.CAPTCHA),
    ChallengeRule("g-recaptcha", "captcha", "html", ChallengeKind.CAPTCHA),
    ChallengeRule("h-captcha", "captcha", "html", ChallengeKind.CAPTCHA),
    ChallengeRule("Verify you are human", "captcha", "text", ChallengeKind.CAPTCHA),

    # Press and hold (PerimeterX and similar)
    ChallengeRule("Press and hold", "press_and_hold", "text", ChallengeKind.PRESS_AND_HOLD),
    ChallengeRule("Verify you are human", "press_and_hold", "text", ChallengeKind.PRESS_AND_HOLD),
    ChallengeRule("px-captcha", "press_and_hold", "html", ChallengeKind.PRESS_AND_HOLD),

    # Click to proceed
    ChallengeRule("Click to Proceed", "click_to_proceed", "text", ChallengeKind.CLICK_TO_PROCEED),
    ChallengeRule("click here to continue", "click_to_proceed", "text", ChallengeKind.CLICK_TO_PROCEED),
    ChallengeRule("Press to continue", "click_to_proceed", "text", ChallengeKind.CLICK_TO_PROCEED),
    ChallengeRule("Verify you are human", "click_to_proceed", "text", ChallengeKind.CLICK_TO_PROCEED),
)

# Proceed controls, tried in order
PROCEED_SELECTORS = [
    'button:has-text("Proceed")',
    'button:has-text("Continue")',
    'button:has-text("Verify")',
    'a:has-text("Click to Proceed")',
    'a:has-text("Proceed to Page")',
    'input[type="submit"]',
    '.btn-sucuri',
    '#challenge-form button',
    'form button[type="submit"]',
    '#px-captcha',
    'div[role="button"]:has-text("Verify")',
    '#challenge-stage',
]

# Body text that must be gone before an interactive bypass counts as cleared
CLEARANCE_MARKERS = (
    "Website Firewall",
    "Click to Proceed",
    "Verify you are human",
    "Sucuri",
)

# Body text that, with a blocking status, means access was refused
BLOCKED_TEXT_MARKERS = (
    "Access Denied",
    "Access blocked",
    "Website Firewall",
)

BLOCKING_STATUS_CODES = frozenset({403})


@dataclass
class WafTimings:
    """Bounded waits used while handling a challenge (milliseconds)."""
    pre_interaction_ms: int = 2000
    hold_ms: int = 3000
    clearance_timeout_ms: int = 10000
    after_interaction_ms: int = 1000
    passive_timeout_ms: int = 15000
    settle_ms: int = 3000
    poll_interval_ms: int = 500


@dataclass
class PageSnapshot:
    """Body text and document markup captured in one evaluation."""
    text: str = ""
    html: str = ""


@dataclass
class ChallengeDetection:
    """Rules that matched a page snapshot."""
    matched: List[ChallengeRule] = field(default_factory=list)

    @property
    def is_challenge(self) -> bool:
        return bool(self.matched)

    @property
    def labels(self) -> List[str]:
        seen: List[str] = []
        for rule in self.matched:
            if rule.label not in seen:
                seen.append(rule.label)
        return seen

    def has(self, *kinds: ChallengeKind) -> bool:
        return any(rule.kind in kinds for rule in self.matched)

    def rules_of(self, kind: ChallengeKind) -> List[ChallengeRule]:
        return [rule for rule in self.matched if rule.kind == kind]


@dataclass
class ChallengeOutcome:
    """Result of running the challenge handler on a page."""
    state: ChallengeState = ChallengeState.UNKNOWN
    labels: List[str] = field(default_factory=list)
    strategy: Optional[str] = None  # interactive, passive, or None
    selector: Optional[str] = None
    error: Optional[str] = None

    @property
    def challenged(self) -> bool:
        return self.state not in (
            ChallengeState.UNKNOWN,
            ChallengeState.DETECTING,
            ChallengeState.NOT_CHALLENGED,
        )

    @property
    def bypassed(self) -> bool:
        return self.state == ChallengeState.BYPASSED

    @property
    def still_blocked(self) -> bool:
        return self.state == ChallengeState.STILL_BLOCKED

    def to_dict(self) -> dict:
        """Convert to dictionary for logging or JSON serialization."""
        return {
            "state": self.state.value,
            "labels": self.labels,
            "strategy": self.strategy,
            "selector": self.selector,
            "error": self.error,
        }


class WafChallengeHandler:
    """
    Detects challenge pages and attempts to get past them.

    Strategy A (interactive) presses a known proceed control; strategy B
    (passive) waits for a JS challenge to resolve itself. Handler failures
    are logged and reported in the outcome, never raised.
    """

    def __init__(
        self,
        rules: Iterable[ChallengeRule] = CHALLENGE_RULES,
        proceed_selectors: Optional[List[str]] = None,
        timings: Optional[WafTimings] = None,
        simulator: Optional[HumanSimulator] = None,
    ):
        self.rules = tuple(rules)
        self.proceed_selectors = proceed_selectors or list(PROCEED_SELECTORS)
        self.timings = timings or WafTimings()
        self.simulator = simulator or HumanSimulator(HumanSimulatorConfig())
        self._snapshot_script = ExtractionScript.load("snapshot", 1)

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    async def snapshot(self, page) -> PageSnapshot:
        data = await evaluate_script(page, self._snapshot_script)
        data = data or {}
        return PageSnapshot(text=data.get("text") or "", html=data.get("html") or "")

    def match(self, snapshot: PageSnapshot) -> ChallengeDetection:
        """Match the rule table against a snapshot."""
        return ChallengeDetection(
            matched=[rule for rule in self.rules if rule.matches(snapshot)]
        )

    async def detect(self, page) -> ChallengeDetection:
        return self.match(await self.snapshot(page))

    # -------------------------------------------------------------------------
    # Bypass
    # -------------------------------------------------------------------------

    async def handle(self, page) -> ChallengeOutcome:
        """
        Detect a challenge and try to bypass it.

        Args:
            page: Playwright page, already navigated

        Returns:
            ChallengeOutcome describing the final state
        """
        outcome = ChallengeOutcome(state=ChallengeState.DETECTING)

        try:
            detection = await self.detect(page)
        except Exception as e:
            logger.warning(f"[WAF] Challenge detection failed: {e}")
            outcome.state = ChallengeState.NOT_CHALLENGED
            outcome.error = str(e)
            return outcome

        if not detection.is_challenge:
            outcome.state = ChallengeState.NOT_CHALLENGED
            return outcome

        outcome.state = ChallengeState.CHALLENGE_DETECTED
        outcome.labels = detection.labels
        logger.info(f"[WAF] Challenge detected: {', '.join(detection.labels)}")

        try:
            resolved = False
            if detection.has(*INTERACTIVE_KINDS):
                outcome.strategy = "interactive"
                outcome.selector = await self._attempt_interactive(page, detection)
                resolved = outcome.selector is not None

            if not resolved and detection.has(ChallengeKind.JS_CHALLENGE):
                outcome.strategy = "passive"
                logger.info("[WAF] JS challenge detected, waiting for auto-verification...")
                resolved = await self._attempt_passive(page, detection)
                if not resolved:
                    logger.warning("[WAF] JS challenge wait timed out")

            outcome.state = ChallengeState.BYPASS_ATTEMPTED
            if not resolved:
                await self._sleep_ms(self.timings.settle_ms)

            after = await self.detect(page)
        except Exception as e:
            logger.warning(f"[WAF] Challenge bypass error: {e}")
            outcome.state = ChallengeState.STILL_BLOCKED
            outcome.error = str(e)
            return outcome

        if after.is_challenge:
            outcome.state = ChallengeState.STILL_BLOCKED
            logger.warning(f"[WAF] Still challenged after bypass attempt: {', '.join(after.labels)}")
        else:
            outcome.state = ChallengeState.BYPASSED
            logger.info(f"[WAF] Challenge bypassed ({outcome.strategy or 'settle'})")
        return outcome

    async def _attempt_interactive(self, page, detection: ChallengeDetection) -> Optional[str]:
        """Press the first proceed control found. Returns its selector."""
        await self._sleep_ms(self.timings.pre_interaction_ms)
        hold = detection.has(ChallengeKind.PRESS_AND_HOLD)

        for selector in self.proceed_selectors:
            try:
                element = await page.query_selector(selector)
                if element is None:
                    continue

                logger.info(f"[WAF] Found challenge element: {selector}")
                if hold:
                    acted = await self.simulator.press_and_hold(
                        page, selector, hold_ms=self.timings.hold_ms
                    )
                else:
                    acted = await self.simulator.click_element(page, selector)
                if not acted:
                    continue

                await self._wait_until(
                    page,
                    lambda snap: not any(marker in snap.text for marker in CLEARANCE_MARKERS),
                    self.timings.clearance_timeout_ms,
                )
                await self._sleep_ms(self.timings.after_interaction_ms)
                return selector
            except Exception as e:
                logger.debug(f"[WAF] Selector {selector} failed: {e}")
                continue

        logger.info("[WAF] No proceed control found")
        return None

    async def _attempt_passive(self, page, detection: ChallengeDetection) -> bool:
        js_rules = detection.rules_of(ChallengeKind.JS_CHALLENGE)
        return await self._wait_until(
            page,
            lambda snap: not any(rule.matches(snap) for rule in js_rules),
            self.timings.passive_timeout_ms,
        )

    async def _wait_until(
        self,
        page,
        predicate: Callable[[PageSnapshot], bool],
        timeout_ms: int,
    ) -> bool:
        """Poll page snapshots until the predicate holds or the timeout passes."""
        interval = max(self.timings.poll_interval_ms, 1)
        elapsed = 0

        while True:
            try:
                if predicate(await self.snapshot(page)):
                    return True
            except Exception as e:
                # Navigation in progress destroys the execution context
                logger.debug(f"[WAF] Snapshot failed while waiting: {e}")

            if elapsed >= timeout_ms:
                return False
            await self._sleep_ms(interval)
            elapsed += interval

    async def _sleep_ms(self, ms: int) -> None:
        if ms > 0:
            await asyncio.sleep(ms / 1000.0)

    # -------------------------------------------------------------------------
    # Final blocked check
    # -------------------------------------------------------------------------

    async def blocking_evidence(self, page, status_code: Optional[int]) -> Optional[str]:
        """
        Describe why the page refuses access, or None if it does not.

        A blocking HTTP status alone is not enough; the body must also show
        a refusal marker. Challenge rules that still match on a page served
        normally do not count.
        """
        if status_code not in BLOCKING_STATUS_CODES:
            return None
        try:
            snapshot = await self.snapshot(page)
        except Exception as e:
            logger.warning(f"[WAF] Blocked check failed: {e}")
            return None
        for marker in BLOCKED_TEXT_MARKERS:
            if marker in snapshot.text:
                return f"HTTP {status_code} with \"{marker}\""
        return None

    async def is_still_blocked(self, page, status_code: Optional[int]) -> bool:
        """Whether the page refuses access; see blocking_evidence."""
        return await self.blocking_evidence(page, status_code) is not None
