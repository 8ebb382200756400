"""
Pointer interaction for challenge widgets.

Interstitials that want a click or a press-and-hold are driven with a pointer
that travels along a curved path, lands slightly off the element centre and
pauses briefly before acting. Fast mode acts on the element directly.
"""

import asyncio
import random
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

Point = tuple[float, float]


@dataclass
class HumanSimulatorConfig:
    """Pointer behaviour settings."""

    pre_click_delay_ms: int = 100
    max_click_offset_px: int = 3

    # Path shape
    mouse_move_steps: int = 10
    max_curve_px: float = 60.0  # Sideways pull of the Bezier control point
    step_delay_ms: int = 10

    fast_mode: bool = False


def _ease_in_out(t: float) -> float:
    return t * t * (3 - 2 * t)


def bezier_path(start: Point, end: Point, control: Point, steps: int) -> list[Point]:
    """Points along a quadratic Bezier curve, eased so the pointer slows near both ends."""
    points = []
    for i in range(1, steps + 1):
        t = _ease_in_out(i / steps)
        u = 1 - t
        points.append((
            u * u * start[0] + 2 * u * t * control[0] + t * t * end[0],
            u * u * start[1] + 2 * u * t * control[1] + t * t * end[1],
        ))
    return points


class HumanSimulator:
    """
    Clicks and press-and-holds with a human-looking pointer.

    Usage:
        simulator = HumanSimulator()
        await simulator.click_element(page, 'a:has-text("Click to Proceed")')
        await simulator.press_and_hold(page, "#px-captcha", hold_ms=3000)
    """

    def __init__(self, config: Optional[HumanSimulatorConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or HumanSimulatorConfig()
        self._rng = rng or random.Random()

    async def _target_point(self, element) -> Optional[Point]:
        box = await element.bounding_box()
        if not box:
            return None

        spread = self.config.max_click_offset_px
        return (
            box["x"] + box["width"] / 2 + self._rng.uniform(-spread, spread),
            box["y"] + box["height"] / 2 + self._rng.uniform(-spread, spread),
        )

    def _start_point(self, page) -> Point:
        # Playwright does not expose the pointer position
        viewport = page.viewport_size
        if not viewport:
            return (500.0, 300.0)
        return (viewport["width"] / 2, viewport["height"] / 2)

    async def move_to(self, page, target: Point) -> None:
        """Move the pointer to `target` along a randomly bent curve."""
        start = self._start_point(page)
        bend = self._rng.uniform(-self.config.max_curve_px, self.config.max_curve_px)
        control = (
            (start[0] + target[0]) / 2 + bend,
            (start[1] + target[1]) / 2 - bend,
        )

        path = bezier_path(start, target, control, self.config.mouse_move_steps)
        # Land exactly on the target
        path[-1] = target
        for x, y in path:
            await page.mouse.move(x, y)
            await asyncio.sleep(self.config.step_delay_ms / 1000.0)

    async def click_element(self, page, selector: str) -> bool:
        """
        Click the first element matching `selector`.

        Returns:
            False if no such element exists
        """
        element = await page.query_selector(selector)
        if not element:
            logger.warning(f"Element not found for click: {selector}")
            return False

        target = None if self.config.fast_mode else await self._target_point(element)
        if target is None:
            await element.click()
            return True

        await self.move_to(page, target)
        await asyncio.sleep(self.config.pre_click_delay_ms / 1000.0)
        await page.mouse.click(*target)

        logger.debug(f"Clicked element: {selector}")
        return True

    async def press_and_hold(self, page, selector: str, hold_ms: int = 3000) -> bool:
        """
        Press the pointer down on an element, hold, then release.

        Returns:
            False if the element is missing or has no box to press on
        """
        element = await page.query_selector(selector)
        if not element:
            logger.warning(f"Element not found for press-and-hold: {selector}")
            return False

        target = await self._target_point(element)
        if target is None:
            logger.debug(f"No bounding box for press-and-hold: {selector}")
            return False

        if self.config.fast_mode:
            await page.mouse.move(*target)
        else:
            await self.move_to(page, target)

        await page.mouse.down()
        await asyncio.sleep(hold_ms / 1000.0)
        await page.mouse.up()

        logger.debug(f"Held element for {hold_ms}ms: {selector}")
        return True


def create_human_simulator(fast_mode: bool = False) -> HumanSimulator:
    """Create a HumanSimulator, optionally in fast mode (no pointer travel)."""
    return HumanSimulator(HumanSimulatorConfig(fast_mode=fast_mode))
