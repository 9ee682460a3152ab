"""
Executor - the single-item automation recipe.

ItemDriver knows how to search, find the first product and press its add
control on whatever page context is alive. ItemWorkflow wires those steps into
a LangGraph state graph and reports every phase change to the controller.
"""

import logging
from typing import Any, Callable, Literal, Optional
from urllib.parse import quote_plus

from langgraph.graph import StateGraph, START, END
from pydantic import BaseModel

from heb_shopper.config import ShopperConfig
from heb_shopper.models.grocery_list import GroceryItem
from heb_shopper.models.events import ItemUpdateMessage, LogMessage
from heb_shopper.core.cancellation import CancelToken
from heb_shopper.core.errors import (
    ItemError, NotFound, NoProductsFound, NoAddControlFound, RunCancelled, ContextLost, CheckpointError
)
from heb_shopper.core.selector_resolver import (
    SelectorResolver, PRODUCT_CARD_LOCATORS, PRODUCT_NAME_SELECTORS, ADD_CONTROL_LOCATORS
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# hover, press, release, click
POINTER_SEQUENCE = ("pointerdown", "mousedown", "pointerup", "mouseup", "click")


class DriverReporter:
    """Sends driver -> controller messages for one run."""

    def __init__(self, run_id: str, send: Callable):
        self.run_id = run_id
        self._send = send

    def item(self, index: int, phase: str, detail: Optional[str] = None, error: Optional[str] = None):
        self._send(ItemUpdateMessage(
            run_id=self.run_id, item_index=index, phase=phase, detail=detail, error=error
        ))

    def log(self, level: str, message: str):
        self._send(LogMessage(run_id=self.run_id, level=level, message=message))


class ItemDriver:
    """Per-item automation steps against a live page context."""

    def __init__(
        self,
        context,
        config: ShopperConfig,
        cancel_token: CancelToken,
        resolver: Optional[SelectorResolver] = None,
    ):
        self.context = context
        self.config = config
        self.cancel_token = cancel_token
        self.resolver = resolver or SelectorResolver(
            poll_interval=config.poll_interval_seconds,
            sleep=cancel_token.sleep,
        )

    def search_url(self, item: GroceryItem) -> str:
        return self.config.search_url_prefix + quote_plus(item.search_query)

    def search(self, item: GroceryItem) -> bool:
        """
        Navigate to the search results for the item.

        Returns:
            True when the navigation destroyed the calling context; the caller
            must have written a checkpoint before calling.
        """
        self.cancel_token.raise_if_cancelled()
        url = self.search_url(item)
        logger.info(f"[DRIVER] Searching for '{item.name}': {url}")
        self.context.navigate(url)
        if self.context.destroys_on_navigation:
            return True

        self.context.wait_for_load(self.config.navigation_timeout_seconds)
        self.cancel_token.raise_if_cancelled()
        return False

    def locate_product(self, item_name: Optional[str] = None):
        """First product card of the results grid."""
        try:
            match = self.resolver.locate(
                self.context, PRODUCT_CARD_LOCATORS, self.config.product_wait_seconds
            )
        except NotFound as e:
            label = f' for "{item_name}"' if item_name else ""
            raise NoProductsFound(e.candidates, e.timeout, message=f"No products found{label}") from e
        logger.info(f"[DRIVER] Product grid matched via {match.locator} ({len(match.elements)} cards)")
        return match.first

    def extract_display_name(self, card, fallback: str) -> str:
        for selector in PRODUCT_NAME_SELECTORS:
            for element in card.query_all(selector):
                text = (element.text_content() or "").strip()
                if text:
                    return text
        return fallback

    def add_to_cart(self, card) -> None:
        """
        Activate the card's add control with a full pointer sequence, then
        give the page time to update the cart. Nothing confirms the cart changed.
        """
        try:
            match = self.resolver.locate(card, ADD_CONTROL_LOCATORS, self.config.add_control_wait_seconds)
        except NotFound as e:
            raise NoAddControlFound(
                e.candidates, e.timeout, message="Could not find add-to-cart button"
            ) from e

        control = match.first
        self.cancel_token.raise_if_cancelled()
        control.hover()
        for event_type in POINTER_SEQUENCE:
            control.dispatch(event_type)
        logger.info(f"[DRIVER] Activated add control via {match.locator}")
        self.cancel_token.sleep(self.config.settle_seconds)


class ItemWorkflowState(BaseModel):
    index: int
    item: GroceryItem
    entry: Literal["search", "locate_product"] = "search"
    navigated: bool = False
    card: Optional[Any] = None
    display_name: Optional[str] = None
    completed: bool = False

    class Config:
        arbitrary_types_allowed = True


class ItemOutcome(BaseModel):
    phase: Optional[Literal["completed", "error"]] = None
    navigated: bool = False
    error: Optional[str] = None


class ItemWorkflow:
    """
    search -> locate_product -> add_to_cart as a LangGraph graph.

    Entry is "search" for a fresh item and "locate_product" when resuming on a
    results page that was loaded by an earlier page context.
    """

    def __init__(
        self,
        driver: ItemDriver,
        reporter: DriverReporter,
        before_navigate: Optional[Callable[[int], None]] = None,
    ):
        self.driver = driver
        self.reporter = reporter
        self.before_navigate = before_navigate
        self.graph = self._build_graph()

    def _search(self, state: ItemWorkflowState) -> dict:
        self.reporter.item(state.index, "searching", f'Looking up "{state.item.name}"')
        if self.before_navigate is not None:
            self.before_navigate(state.index)
        self.reporter.log("info", f'Navigating to search results for "{state.item.name}".')
        navigated = self.driver.search(state.item)
        return {"navigated": navigated}

    def _locate_product(self, state: ItemWorkflowState) -> dict:
        self.reporter.item(state.index, "evaluating", "Looking for products")
        card = self.driver.locate_product(state.item.name)
        display_name = self.driver.extract_display_name(card, state.item.name)
        self.reporter.log("info", f'Found product: "{display_name}"')
        return {"card": card, "display_name": display_name}

    def _add_to_cart(self, state: ItemWorkflowState) -> dict:
        name = state.display_name or state.item.name
        self.reporter.item(state.index, "adding-to-cart", f'Adding "{name}" to cart')
        self.driver.add_to_cart(state.card)
        self.reporter.log("info", f'Clicked add-to-cart for "{name}"')
        self.reporter.item(state.index, "completed", f'Added "{name}" to cart')
        return {"completed": True}

    @staticmethod
    def _route_entry(state: ItemWorkflowState) -> str:
        return state.entry

    @staticmethod
    def _after_search(state: ItemWorkflowState) -> str:
        if state.navigated:
            return END
        return "locate_product"

    def _build_graph(self):
        workflow = StateGraph(ItemWorkflowState)

        workflow.add_node("search", self._search)
        workflow.add_node("locate_product", self._locate_product)
        workflow.add_node("add_to_cart", self._add_to_cart)

        workflow.add_conditional_edges(START, self._route_entry, ["search", "locate_product"])
        workflow.add_conditional_edges("search", self._after_search, ["locate_product", END])
        workflow.add_edge("locate_product", "add_to_cart")
        workflow.add_edge("add_to_cart", END)

        return workflow.compile()

    def run(self, index: int, item: GroceryItem, entry: str = "search") -> ItemOutcome:
        """
        Run one item. Item-local failures are reported and returned as an
        error outcome; cancellation and lost context propagate.
        """
        try:
            result = self.graph.invoke(ItemWorkflowState(index=index, item=item, entry=entry))
        except (RunCancelled, ContextLost, CheckpointError):
            raise
        except ItemError as e:
            message = e.message
        except Exception as e:
            logger.exception(f"[DRIVER] Unexpected failure on item {index}")
            message = str(e) or type(e).__name__
        else:
            # LangGraph returns dict
            final_state = result if isinstance(result, ItemWorkflowState) else ItemWorkflowState(**result)
            if final_state.navigated and not final_state.completed:
                return ItemOutcome(navigated=True)
            return ItemOutcome(phase="completed")

        self.reporter.item(index, "error", error=message)
        self.reporter.log("error", f'Failed to process "{item.name}": {message}')
        return ItemOutcome(phase="error", error=message)
