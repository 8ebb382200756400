"""Shared fakes for browser-facing tests.

The fakes mimic the slice of the Playwright async API the engine touches:
browser.on/new_context/close, context.add_init_script/new_page/close and the
page calls made by the fetchers, the challenge handler and the simulator.
In-page scripts are answered by name, so tests describe what the page
"returns" instead of running JavaScript.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from linkscrape.extraction.runtime import ExtractionScript

SCRIPT_NAMES = ("snapshot", "preview", "article", "content_ready")


def _script_names_by_source() -> Dict[str, str]:
    return {ExtractionScript.load(name).source: name for name in SCRIPT_NAMES}


class FakeResponse:
    def __init__(self, status: int = 200):
        self.status = status


class FakeMouse:
    def __init__(self, page: "FakePage"):
        self.page = page
        self.events: List[tuple] = []

    async def move(self, x, y):
        self.events.append(("move", x, y))

    async def down(self):
        self.events.append(("down",))

    async def up(self):
        self.events.append(("up",))
        if self.page.on_release:
            self.page.on_release(self.page)

    async def click(self, x, y):
        self.events.append(("click", x, y))


class FakeElement:
    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector
        self.clicks = 0

    async def bounding_box(self):
        return {"x": 100, "y": 200, "width": 80, "height": 30}

    async def click(self):
        self.clicks += 1
        if self.page.on_click:
            self.page.on_click(self.page)


class FakePage:
    """
    A page whose in-page scripts return canned values.

    `scripts` maps a script name to a value or to a callable taking
    (page, arg). The snapshot script defaults to the page's `body_text` and
    `html` attributes, so tests can change what the page shows by mutating
    them.
    """

    def __init__(
        self,
        scripts: Optional[Dict[str, Any]] = None,
        status: int = 200,
        body_text: str = "",
        html: str = "",
        selectors: Optional[List[str]] = None,
        final_url: Optional[str] = None,
        goto_error: Optional[Exception] = None,
    ):
        self.scripts = dict(scripts or {})
        self.status = status
        self.body_text = body_text
        self.html = html
        self.final_url = final_url
        self.goto_error = goto_error
        self.elements = {selector: FakeElement(self, selector) for selector in selectors or []}
        self.mouse = FakeMouse(self)
        self.viewport_size = {"width": 1280, "height": 720}
        self.url = "about:blank"
        self.calls: List[str] = []
        self.routes: List[tuple] = []
        self.on_click: Optional[Callable[["FakePage"], None]] = None
        self.on_release: Optional[Callable[["FakePage"], None]] = None
        self._names = _script_names_by_source()

    def _answer(self, name: str, arg: Any = None) -> Any:
        if name == "snapshot" and name not in self.scripts:
            return {"text": self.body_text, "html": self.html}
        value = self.scripts.get(name)
        if callable(value):
            return value(self, arg)
        return value

    async def route(self, pattern, handler):
        self.routes.append((pattern, handler))

    async def goto(self, url, wait_until=None, timeout=None):
        self.calls.append(f"goto:{url}")
        if self.goto_error is not None:
            raise self.goto_error
        self.url = self.final_url or url
        return FakeResponse(self.status)

    async def evaluate(self, source, arg=None):
        name = self._names.get(source, "unknown")
        self.calls.append(f"evaluate:{name}")
        return self._answer(name, arg)

    async def wait_for_function(self, source, timeout=None):
        name = self._names.get(source, "unknown")
        self.calls.append(f"wait_for_function:{name}")
        if not self._answer(name):
            raise asyncio.TimeoutError(f"Timeout {timeout}ms exceeded")
        return True

    async def wait_for_load_state(self, state="load", timeout=None):
        self.calls.append(f"wait_for_load_state:{state}")

    async def query_selector(self, selector):
        return self.elements.get(selector)


class FakeContext:
    def __init__(self, browser: "FakeBrowser", options: Dict[str, Any]):
        self.browser = browser
        self.options = options
        self.init_scripts: List[str] = []
        self.closed = False

    async def add_init_script(self, script=None, path=None):
        self.init_scripts.append(script)

    async def new_page(self):
        return self.browser.page_factory()

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page_factory: Optional[Callable[[], FakePage]] = None):
        self.page_factory = page_factory or FakePage
        self.contexts: List[FakeContext] = []
        self.handlers: Dict[str, List[Callable]] = {}
        self.closed = False

    def on(self, event, callback):
        self.handlers.setdefault(event, []).append(callback)

    def disconnect(self):
        for callback in self.handlers.get("disconnected", []):
            callback(self)

    async def new_context(self, **options):
        context = FakeContext(self, options)
        self.contexts.append(context)
        return context

    async def close(self):
        self.closed = True


class FakeLauncher:
    """Counts launches; optionally slow, optionally failing first."""

    def __init__(
        self,
        page_factory: Optional[Callable[[], FakePage]] = None,
        delay: float = 0.0,
        fail_times: int = 0,
    ):
        self.page_factory = page_factory
        self.delay = delay
        self.fail_times = fail_times
        self.launches = 0
        self.browsers: List[FakeBrowser] = []

    async def __call__(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError("Browser failed to start")
        self.launches += 1
        browser = FakeBrowser(self.page_factory)
        self.browsers.append(browser)
        return browser


@pytest.fixture
def make_page():
    """Factory for FakePage instances."""
    return FakePage


@pytest.fixture
def make_launcher():
    """Factory for FakeLauncher instances."""
    return FakeLauncher


@pytest.fixture
def make_browser():
    """Factory for FakeBrowser instances."""
    return FakeBrowser
