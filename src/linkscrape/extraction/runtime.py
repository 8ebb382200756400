"""
Versioned in-page scripts and the single way to run them.

Scripts ship as package data under ``extraction/scripts/<name>.v<version>.js``.
Each file holds one JavaScript function expression; Playwright invokes it
with the optional argument.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionScript:
    """A named, versioned JavaScript function expression."""
    name: str
    version: int
    source: str

    @property
    def ref(self) -> str:
        return f"{self.name}.v{self.version}"

    @classmethod
    def load(cls, name: str, version: int = 1) -> "ExtractionScript":
        """
        Load a script from package data.

        Raises:
            FileNotFoundError: If no such script version ships with the package
        """
        return _load_script(name, version)


def _strip_header(source: str) -> str:
    lines = source.strip().splitlines()
    while lines and lines[0].lstrip().startswith("//"):
        lines.pop(0)
    return "\n".join(lines).strip()


@lru_cache(maxsize=None)
def _load_script(name: str, version: int) -> ExtractionScript:
    resource = resources.files("linkscrape.extraction").joinpath("scripts", f"{name}.v{version}.js")
    if not resource.is_file():
        raise FileNotFoundError(f"Extraction script not found: {name}.v{version}.js")
    source = _strip_header(resource.read_text(encoding="utf-8"))
    logger.debug(f"Loaded extraction script {name}.v{version} ({len(source)} chars)")
    return ExtractionScript(name=name, version=version, source=source)


async def evaluate_script(page, script: ExtractionScript, arg: Optional[Any] = None) -> Any:
    """Run a script in the page and return its JSON-serializable result."""
    if arg is None:
        return await page.evaluate(script.source)
    return await page.evaluate(script.source, arg)


async def wait_for_script(page, script: ExtractionScript, timeout_ms: int) -> bool:
    """
    Wait until a predicate script returns a truthy value.

    Returns:
        False if the timeout passed first
    """
    try:
        await page.wait_for_function(script.source, timeout=timeout_ms)
        return True
    except Exception as e:
        logger.debug(f"Wait for {script.ref} ended without success: {e}")
        return False
