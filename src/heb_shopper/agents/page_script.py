"""
Page-script driver for contexts that die on every navigation.

A PageScript lives for exactly one page load. Anything it needs to carry
across a navigation goes through the checkpoint store: it advances the phase,
writes the checkpoint, and only then navigates. The next page's script reads
the checkpoint on boot and picks the current item up at "evaluating"; a
search that was recorded before the navigation is never issued again.
"""

import logging
from typing import Callable, List, Optional
from urllib.parse import parse_qs, urlparse

from heb_shopper.config import ShopperConfig
from heb_shopper.models.checkpoint import RunCheckpoint
from heb_shopper.models.grocery_list import GroceryItem
from heb_shopper.core.cancellation import CancelToken
from heb_shopper.core.checkpoint_store import CheckpointStore
from heb_shopper.core.errors import ContextLost, RunCancelled
from .executor import DriverReporter, ItemDriver, ItemWorkflow

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

IDLE = "idle"
NAVIGATED = "navigated"
FINISHED = "finished"


def _same_results_page(current: str, expected: str) -> bool:
    """Same host, path and search query; other query parameters are ignored."""
    a, b = urlparse(current), urlparse(expected)
    if (a.netloc, a.path.rstrip("/")) != (b.netloc, b.path.rstrip("/")):
        return False
    return parse_qs(a.query).get("q") == parse_qs(b.query).get("q")


class PageScript:
    """Driver instance bound to a single page load."""

    def __init__(
        self,
        context,
        store: CheckpointStore,
        send: Callable,
        cancel_token: CancelToken,
        config: ShopperConfig,
    ):
        self.context = context
        self.store = store
        self.send = send
        self.cancel_token = cancel_token
        self.config = config
        self.driver = ItemDriver(context, config, cancel_token)
        self._checkpoint: Optional[RunCheckpoint] = None

    def start(self, run_id: str, items: List[GroceryItem]) -> str:
        """Begin a fresh run on this page."""
        checkpoint = RunCheckpoint(run_id=run_id, items=items)
        self._save(checkpoint)
        return self._drive(checkpoint, entry="search")

    def boot(self, expected_run_id: Optional[str] = None) -> str:
        """
        First thing a new page's script does: look for a checkpoint.

        Returns:
            IDLE when there is nothing to resume, otherwise the outcome of
            driving the run forward from the checkpoint.
        """
        checkpoint = self.store.load()
        if checkpoint is None:
            logger.info("[PAGE-SCRIPT] No checkpoint; waiting for a start command")
            return IDLE

        if expected_run_id is not None and checkpoint.run_id != expected_run_id:
            raise ContextLost(
                f"Checkpoint belongs to run {checkpoint.run_id}, expected {expected_run_id}; start a new run."
            )

        reporter = DriverReporter(checkpoint.run_id, self.send)
        if checkpoint.cancel_requested or self.cancel_token.cancelled:
            raise RunCancelled()

        if checkpoint.exhausted:
            self.store.clear()
            return FINISHED

        index = checkpoint.current_index
        name = checkpoint.items[index].name
        if checkpoint.phase != "searching" or not checkpoint.search_url:
            raise ContextLost(
                f'No search was recorded for item {index + 1} ("{name}") before the page changed; '
                "the open page cannot be trusted. Start a new run."
            )
        if not _same_results_page(self.context.url, checkpoint.search_url):
            raise ContextLost(
                f'The page is not the search results for "{name}" '
                f"(expected {checkpoint.search_url}, found {self.context.url}). Start a new run."
            )

        reporter.log(
            "info",
            f'Resuming item {index + 1} of {len(checkpoint.items)}: "{name}"',
        )
        logger.info(f"[PAGE-SCRIPT] Resuming run {checkpoint.run_id} at item {index} (recorded phase: {checkpoint.phase})")
        return self._drive(checkpoint, entry="locate_product")

    def _save(self, checkpoint: RunCheckpoint) -> None:
        if self.cancel_token.cancelled and not checkpoint.cancel_requested:
            checkpoint = checkpoint.model_copy(update={"cancel_requested": True})
        self.store.save(checkpoint)
        self._checkpoint = checkpoint

    def _before_navigate(self, index: int) -> None:
        url = self.driver.search_url(self._checkpoint.items[index])
        self._save(self._checkpoint.at_phase("searching", search_url=url))

    def _drive(self, checkpoint: RunCheckpoint, entry: str) -> str:
        self._checkpoint = checkpoint
        reporter = DriverReporter(checkpoint.run_id, self.send)
        workflow = ItemWorkflow(self.driver, reporter, before_navigate=self._before_navigate)

        while not self._checkpoint.exhausted:
            if self.cancel_token.cancelled:
                self._save(self._checkpoint)
                raise RunCancelled()

            index = self._checkpoint.current_index
            outcome = workflow.run(index, self._checkpoint.items[index], entry=entry)
            if outcome.navigated:
                logger.info(f"[PAGE-SCRIPT] Context handed off at item {index}")
                return NAVIGATED

            self._save(self._checkpoint.advance(outcome.phase))
            entry = "search"
            if not self._checkpoint.exhausted:
                self.cancel_token.sleep(self.config.inter_item_delay_seconds)

        self.store.clear()
        logger.info(f"[PAGE-SCRIPT] Run {checkpoint.run_id} finished on this page")
        return FINISHED
