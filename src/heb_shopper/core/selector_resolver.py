"""
Selector fallback resolution.

Store markup differs between page variants, so every element we need is
described by an ordered list of candidate locators, most specific first.
The resolver polls the whole list until one candidate matches or the wait
runs out.
"""

import re
import time
import logging
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel

from .errors import NotFound

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


class Locator(BaseModel):
    """CSS selector, optionally narrowed to elements whose text matches a pattern."""
    css: str
    text_pattern: Optional[str] = None

    class Config:
        frozen = True

    def find_all(self, scope) -> List:
        elements = scope.query_all(self.css)
        if self.text_pattern is None:
            return list(elements)
        pattern = re.compile(self.text_pattern, re.IGNORECASE)
        return [el for el in elements if pattern.search(el.text_content() or "")]

    def __str__(self) -> str:
        if self.text_pattern:
            return f"{self.css} /{self.text_pattern}/"
        return self.css


class Match(BaseModel):
    locator: Locator
    elements: List

    class Config:
        arbitrary_types_allowed = True

    @property
    def first(self):
        return self.elements[0]


def locators(*css: str) -> List[Locator]:
    return [Locator(css=c) for c in css]


# Product cards in the search results grid
PRODUCT_CARD_LOCATORS = locators(
    "[data-qa='product-card']",
    "[data-automation-id='product-card']",
    "[data-test='product-card']",
    ".product-grid__item",
    ".product-item",
    ".product-card",
)

# Child elements tried, in order, for the product's display name
PRODUCT_NAME_SELECTORS = ("a", "h2", "h3", "h4", "span", "p")

# Add-to-cart control inside a product card
ADD_CONTROL_LOCATORS = [
    Locator(css="[data-qa='add-to-cart']"),
    Locator(css="[data-automation-id='add-to-cart']"),
    Locator(css="[data-test='add-to-cart']"),
    Locator(css="button[data-qa*='add' i]"),
    Locator(css="button[data-automation-id*='add' i]"),
    Locator(css="button[aria-label*='add' i]"),
    Locator(css="button", text_pattern=r"\badd\b"),
]


class SelectorResolver:
    """Polls candidate locators in priority order within a bounded wait."""

    def __init__(
        self,
        poll_interval: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    def try_once(self, scope, candidates: Sequence[Locator]) -> Optional[Match]:
        for locator in candidates:
            elements = locator.find_all(scope)
            if elements:
                return Match(locator=locator, elements=elements)
        return None

    def locate(self, scope, candidates: Sequence[Locator], timeout: float) -> Match:
        """
        Return the first candidate with at least one live element.

        Args:
            scope: Page context or element to search under
            candidates: Locators, highest priority first
            timeout: Seconds to keep retrying the whole list

        Raises:
            NotFound: nothing matched before the deadline
        """
        deadline = self._clock() + timeout
        attempts = 0
        while True:
            attempts += 1
            match = self.try_once(scope, candidates)
            if match is not None:
                logger.debug(f"Matched {match.locator} after {attempts} attempt(s)")
                return match

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.debug(f"No match among {len(candidates)} locators after {attempts} attempt(s)")
                raise NotFound(candidates, timeout)
            self._sleep(min(self.poll_interval, remaining))
