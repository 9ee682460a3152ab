"""
Shared fakes for the test suite: an in-memory store page, a fake clock, and
fast configuration. Nothing here needs a browser, network or model.
"""

import time
from typing import Callable, Dict, Iterable, List, Optional
from urllib.parse import urlparse, parse_qs

import pytest

from heb_shopper.config import ShopperConfig
from heb_shopper.core.browser import PageElement, PageContext
from heb_shopper.core.checkpoint_store import MemoryCheckpointStore


class FakeElement(PageElement):
    """Element that answers to an exact set of selector strings."""

    def __init__(self, selectors: Iterable[str] = (), text: str = "", children: Optional[List["FakeElement"]] = None):
        self.selectors = set(selectors)
        self.text = text
        self.children = children or []
        self.events: List[str] = []
        self.hovered = False

    def _walk(self):
        for child in self.children:
            yield child
            yield from child._walk()

    def query_all(self, selector: str) -> List["FakeElement"]:
        return [el for el in self._walk() if selector in el.selectors]

    def text_content(self) -> str:
        return self.text

    def hover(self) -> None:
        self.hovered = True

    def dispatch(self, event_type: str) -> None:
        self.events.append(event_type)


def product_card(
    name: str,
    card_selector: str = "[data-qa='product-card']",
    add_button: Optional[FakeElement] = None,
) -> FakeElement:
    """Search-result card with a name link and, by default, a data-qa add button."""
    if add_button is None:
        add_button = FakeElement({"button", "[data-qa='add-to-cart']"}, text="Add to cart")
    return FakeElement(
        {card_selector},
        children=[FakeElement({"a"}, text=name), add_button],
    )


class FakePage(PageContext):
    """
    Store page whose DOM is rebuilt from `catalog` on each navigation.

    catalog maps a lowercased search query to the cards shown for it.
    """

    def __init__(
        self,
        catalog: Optional[Dict[str, List[FakeElement]]] = None,
        destroys_on_navigation: bool = False,
        initial: Optional[List[FakeElement]] = None,
        on_navigate: Optional[Callable[[str], None]] = None,
        url: str = "about:blank",
    ):
        self.catalog = catalog or {}
        self.destroys_on_navigation = destroys_on_navigation
        self.root = FakeElement(children=list(initial or []))
        self.on_navigate = on_navigate
        self.visited: List[str] = []
        self.loads = 0
        self._url = url

    def navigate(self, url: str) -> None:
        self._url = url
        self.visited.append(url)
        query = parse_qs(urlparse(url).query).get("q", [""])[0].lower()
        self.root = FakeElement(children=list(self.catalog.get(query, [])))
        if self.on_navigate is not None:
            self.on_navigate(url)

    def wait_for_load(self, timeout: float) -> None:
        self.loads += 1

    def query_all(self, selector: str) -> List[FakeElement]:
        return self.root.query_all(selector)

    @property
    def url(self) -> str:
        return self._url


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def fast_config() -> ShopperConfig:
    return ShopperConfig(
        product_wait_seconds=0,
        add_control_wait_seconds=0,
        poll_interval_seconds=0,
        settle_seconds=0,
        inter_item_delay_seconds=0,
        navigation_timeout_seconds=1,
    )


@pytest.fixture
def slow_settle_config() -> ShopperConfig:
    """Parks every run in adding-to-cart long enough to cancel it."""
    return ShopperConfig(
        product_wait_seconds=0,
        add_control_wait_seconds=0,
        poll_interval_seconds=0,
        settle_seconds=30,
        inter_item_delay_seconds=0,
        navigation_timeout_seconds=1,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryCheckpointStore:
    return MemoryCheckpointStore()


@pytest.fixture
def grocery_catalog() -> Dict[str, List[FakeElement]]:
    return {
        "milk": [product_card("H-E-B Whole Milk, 1 gal")],
        "frozen peas": [product_card("H-E-B Sweet Peas, 12 oz")],
        "carrots": [product_card("Fresh Carrots, 1 lb", card_selector=".product-card")],
    }
