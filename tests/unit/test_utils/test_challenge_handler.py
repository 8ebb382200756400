"""Unit tests for WafChallengeHandler.

Pages are fakes whose snapshot (body text and markup) the tests control;
all waits are zeroed and the simulator runs in fast mode.
"""

import pytest

pytest_plugins = ('pytest_asyncio',)

from linkscrape.utils.challenge_handler import (
    CHALLENGE_RULES,
    ChallengeKind,
    ChallengeRule,
    ChallengeState,
    PageSnapshot,
    WafChallengeHandler,
    WafTimings,
)
from linkscrape.utils.human_simulator import create_human_simulator

SUCURI_TEXT = "Sucuri WebSite Firewall - Access Denied. Click to Proceed"
ARTICLE_TEXT = "Welcome to the article about asyncio queues."


def fast_timings(**overrides) -> WafTimings:
    values = dict(
        pre_interaction_ms=0,
        hold_ms=0,
        clearance_timeout_ms=0,
        after_interaction_ms=0,
        passive_timeout_ms=0,
        settle_ms=0,
        poll_interval_ms=1,
    )
    values.update(overrides)
    return WafTimings(**values)


@pytest.fixture
def handler():
    return WafChallengeHandler(
        timings=fast_timings(),
        simulator=create_human_simulator(fast_mode=True),
    )


class TestDetection:
    """Tests for the rule table."""

    def test_clean_page_has_no_challenge(self, handler):
        """Test that ordinary content matches nothing."""
        detection = handler.match(PageSnapshot(text=ARTICLE_TEXT, html="<p>hi</p>"))

        assert not detection.is_challenge
        assert detection.labels == []

    def test_sucuri_text(self, handler):
        """Test firewall detection from body text."""
        detection = handler.match(PageSnapshot(text=SUCURI_TEXT))

        assert detection.is_challenge
        assert "sucuri" in detection.labels
        assert detection.has(ChallengeKind.FIREWALL)

    def test_cloudflare_markup(self, handler):
        """Test JS challenge detection from markup only."""
        detection = handler.match(
            PageSnapshot(text="", html='<div id="cf-browser-verification"></div>')
        )

        assert detection.labels == ["cloudflare"]
        assert detection.has(ChallengeKind.JS_CHALLENGE)
        assert not detection.has(ChallengeKind.FIREWALL)

    def test_text_rule_ignores_markup(self, handler):
        """Test that a text rule does not fire on attribute values."""
        detection = handler.match(PageSnapshot(text="", html='<meta content="Checking your browser">'))

        assert not detection.is_challenge

    def test_labels_deduplicated(self, handler):
        """Test that several rules for one vendor give one label."""
        detection = handler.match(
            PageSnapshot(text="Sucuri WebSite Firewall", html='<script src="https://sucuri.net/x.js">')
        )

        assert detection.labels.count("sucuri") == 1

    def test_custom_rules(self):
        """Test that new signatures need no control-flow change."""
        rules = CHALLENGE_RULES + (
            ChallengeRule("Bot check in progress", "acme", "text", ChallengeKind.JS_CHALLENGE),
        )
        handler = WafChallengeHandler(rules=rules, timings=fast_timings())

        detection = handler.match(PageSnapshot(text="Bot check in progress"))

        assert detection.labels == ["acme"]


class TestHandle:
    """Tests for the bypass state machine."""

    @pytest.mark.asyncio
    async def test_not_challenged(self, handler, make_page):
        """Test that a normal page passes straight through."""
        page = make_page(body_text=ARTICLE_TEXT)

        outcome = await handler.handle(page)

        assert outcome.state == ChallengeState.NOT_CHALLENGED
        assert not outcome.challenged
        assert not outcome.bypassed

    @pytest.mark.asyncio
    async def test_click_to_proceed_bypassed(self, handler, make_page):
        """Test the interactive strategy with a click."""
        page = make_page(body_text=SUCURI_TEXT, selectors=['a:has-text("Click to Proceed")'])

        def clear(p):
            p.body_text = ARTICLE_TEXT

        page.on_click = clear

        outcome = await handler.handle(page)

        assert outcome.state == ChallengeState.BYPASSED
        assert outcome.bypassed
        assert outcome.strategy == "interactive"
        assert outcome.selector == 'a:has-text("Click to Proceed")'
        assert page.elements['a:has-text("Click to Proceed")'].clicks == 1

    @pytest.mark.asyncio
    async def test_first_matching_selector_wins(self, handler, make_page):
        """Test that proceed selectors are walked in order."""
        page = make_page(
            body_text=SUCURI_TEXT,
            selectors=['input[type="submit"]', 'button:has-text("Proceed")'],
        )
        page.on_click = lambda p: setattr(p, "body_text", ARTICLE_TEXT)

        outcome = await handler.handle(page)

        assert outcome.selector == 'button:has-text("Proceed")'
        assert page.elements['input[type="submit"]'].clicks == 0

    @pytest.mark.asyncio
    async def test_press_and_hold(self, handler, make_page):
        """Test that a press-and-hold prompt gets pointer down, hold, up."""
        page = make_page(body_text="Press and hold the button", selectors=["#px-captcha"])
        page.on_release = lambda p: setattr(p, "body_text", ARTICLE_TEXT)

        outcome = await handler.handle(page)

        assert outcome.bypassed
        kinds = [event[0] for event in page.mouse.events]
        assert kinds == ["move", "down", "up"]
        assert page.elements["#px-captcha"].clicks == 0

    @pytest.mark.asyncio
    async def test_passive_js_challenge(self, make_page):
        """Test that a JS challenge is waited out."""
        handler = WafChallengeHandler(
            timings=fast_timings(passive_timeout_ms=50),
            simulator=create_human_simulator(fast_mode=True),
        )
        page = make_page(html='<div class="cf-browser-verification"></div>')
        snapshots = iter([
            {"text": "", "html": '<div class="cf-browser-verification"></div>'},
            {"text": "", "html": '<div class="cf-browser-verification"></div>'},
            {"text": ARTICLE_TEXT, "html": "<article></article>"},
        ])
        page.scripts["snapshot"] = lambda p, arg: next(snapshots, {"text": ARTICLE_TEXT, "html": ""})

        outcome = await handler.handle(page)

        assert outcome.strategy == "passive"
        assert outcome.bypassed

    @pytest.mark.asyncio
    async def test_still_blocked(self, handler, make_page):
        """Test that a signature surviving the attempt ends STILL_BLOCKED."""
        page = make_page(body_text=SUCURI_TEXT, selectors=["#challenge-form button"])

        outcome = await handler.handle(page)

        assert outcome.state == ChallengeState.STILL_BLOCKED
        assert outcome.still_blocked
        assert "sucuri" in outcome.labels

    @pytest.mark.asyncio
    async def test_no_proceed_control(self, handler, make_page):
        """Test a firewall page with nothing to click."""
        page = make_page(body_text=SUCURI_TEXT)

        outcome = await handler.handle(page)

        assert outcome.still_blocked
        assert outcome.selector is None

    @pytest.mark.asyncio
    async def test_detection_error_is_not_raised(self, handler, make_page):
        """Test that a failing snapshot yields NOT_CHALLENGED with the error."""
        page = make_page()

        def broken(p, arg):
            raise RuntimeError("Execution context was destroyed")

        page.scripts["snapshot"] = broken

        outcome = await handler.handle(page)

        assert outcome.state == ChallengeState.NOT_CHALLENGED
        assert "Execution context" in outcome.error

    @pytest.mark.asyncio
    async def test_error_during_bypass_is_still_blocked(self, handler, make_page):
        """Test that an error after detection ends STILL_BLOCKED, not raised."""
        page = make_page(body_text=SUCURI_TEXT)
        calls = {"n": 0}

        def flaky(p, arg):
            calls["n"] += 1
            if calls["n"] == 1:
                return {"text": SUCURI_TEXT, "html": ""}
            raise RuntimeError("Target closed")

        page.scripts["snapshot"] = flaky

        outcome = await handler.handle(page)

        assert outcome.state == ChallengeState.STILL_BLOCKED
        assert outcome.error == "Target closed"

    def test_outcome_to_dict(self):
        """Test outcome serialization."""
        from linkscrape.utils.challenge_handler import ChallengeOutcome

        outcome = ChallengeOutcome(state=ChallengeState.BYPASSED, labels=["sucuri"], strategy="interactive")

        assert outcome.to_dict()["state"] == "bypassed"
        assert outcome.to_dict()["labels"] == ["sucuri"]


class TestBlockedCheck:
    """Tests for the final status + text check."""

    @pytest.mark.asyncio
    async def test_403_with_marker_is_blocked(self, handler, make_page):
        """Test the blocking combination."""
        page = make_page(body_text="Access Denied - you do not have permission")

        assert await handler.is_still_blocked(page, 403)

    @pytest.mark.asyncio
    async def test_403_without_marker_is_not_blocked(self, handler, make_page):
        """Test that the status alone is not enough."""
        page = make_page(body_text=ARTICLE_TEXT)

        assert not await handler.is_still_blocked(page, 403)

    @pytest.mark.asyncio
    async def test_marker_without_403_is_not_blocked(self, handler, make_page):
        """Test that the text alone is not enough."""
        page = make_page(body_text="Access Denied")

        assert not await handler.is_still_blocked(page, 200)
        assert not await handler.is_still_blocked(page, None)

    @pytest.mark.asyncio
    async def test_blocking_evidence_names_status_and_marker(self, handler, make_page):
        """Test the description used for blocked results."""
        page = make_page(body_text="Sucuri WebSite Firewall - Access Denied")

        assert await handler.blocking_evidence(page, 403) == 'HTTP 403 with "Access Denied"'
        assert await handler.blocking_evidence(page, 200) is None
