"""Fetch strategies: browser-less HTTP and rendered browser scrapes."""

from .lightweight import LightweightFetcher, LightweightOutcome
from .rendered import RenderedFetcher

__all__ = [
    "LightweightFetcher",
    "LightweightOutcome",
    "RenderedFetcher",
]
