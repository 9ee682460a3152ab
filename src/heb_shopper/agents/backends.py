"""
Automation backends - how the controller gets items driven.

persistent:  one long-lived browser page, driver runs in place, no checkpoint.
page-script: the page context dies on each navigation; a fresh PageScript is
             booted per page load and resumes from the checkpoint.

Both report through the same driver messages, so observers cannot tell them
apart.
"""

import logging
from typing import Callable, List, Optional

from heb_shopper.config import ShopperConfig
from heb_shopper.models.grocery_list import GroceryItem
from heb_shopper.core.cancellation import CancelToken
from heb_shopper.core.checkpoint_store import CheckpointStore, SqliteCheckpointStore
from heb_shopper.core.errors import ContextLost
from .executor import DriverReporter, ItemDriver, ItemWorkflow
from .page_script import PageScript, IDLE, NAVIGATED

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


class AutomationBackend:
    name = "base"
    store: Optional[CheckpointStore] = None

    def execute(
        self,
        run_id: str,
        items: List[GroceryItem],
        start_index: int,
        send: Callable,
        cancel_token: CancelToken,
        resume: bool = False,
    ) -> None:
        raise NotImplementedError

    def shutdown(self) -> None:
        pass


class PersistentBrowserBackend(AutomationBackend):
    """Controller and driver share one process and one page that never goes away."""

    name = "persistent"

    def __init__(self, context_provider: Callable, config: ShopperConfig, session=None):
        self.context_provider = context_provider
        self.config = config
        self.session = session

    def execute(self, run_id, items, start_index, send, cancel_token, resume=False):
        context = self.context_provider()
        driver = ItemDriver(context, self.config, cancel_token)
        reporter = DriverReporter(run_id, send)
        workflow = ItemWorkflow(driver, reporter)
        reporter.log("info", "Browser ready. Make sure you are signed in and have a store selected.")

        entry = "locate_product" if resume else "search"
        for index in range(start_index, len(items)):
            cancel_token.raise_if_cancelled()
            workflow.run(index, items[index], entry=entry)
            entry = "search"
            if index < len(items) - 1:
                cancel_token.sleep(self.config.inter_item_delay_seconds)

    def shutdown(self) -> None:
        if self.session is not None:
            self.session.close()


class PageScriptBackend(AutomationBackend):
    """Hosts one PageScript per page load, handing off through the checkpoint store."""

    name = "page-script"

    def __init__(self, context_provider: Callable, store: CheckpointStore, config: ShopperConfig, session=None):
        self.context_provider = context_provider
        self.store = store
        self.config = config
        self.session = session

    def _new_script(self, send, cancel_token) -> PageScript:
        return PageScript(self.context_provider(), self.store, send, cancel_token, self.config)

    def execute(self, run_id, items, start_index, send, cancel_token, resume=False):
        script = self._new_script(send, cancel_token)
        if resume:
            outcome = script.boot(expected_run_id=run_id)
            if outcome == IDLE:
                raise ContextLost("No checkpoint to resume from; start a new run.")
        else:
            outcome = script.start(run_id, items)

        pages = 1
        while outcome == NAVIGATED:
            cancel_token.raise_if_cancelled()
            context = self.context_provider()
            context.wait_for_load(self.config.navigation_timeout_seconds)
            cancel_token.raise_if_cancelled()

            # the previous script is gone; only the checkpoint carries over
            script = self._new_script(send, cancel_token)
            pages += 1
            outcome = script.boot(expected_run_id=run_id)
            if outcome == IDLE:
                raise ContextLost(
                    "The page was replaced without a saved checkpoint; the run cannot be resumed. Start a new run."
                )
        logger.info(f"[PAGE-SCRIPT] Run {run_id} driven across {pages} page load(s)")

    def shutdown(self) -> None:
        if self.session is not None:
            self.session.close()


def create_backend(config: ShopperConfig) -> AutomationBackend:
    """Build the backend named by config.driver_mode, backed by a lazily opened browser."""
    from heb_shopper.core.browser import BrowserSession

    session = BrowserSession(
        user_data_dir=config.user_data_dir,
        headless=config.headless,
        navigation_timeout_seconds=config.navigation_timeout_seconds,
        start_url=config.store_base_url,
    )

    if config.driver_mode == "page-script":
        store = SqliteCheckpointStore(config.checkpoint_db_path)
        return PageScriptBackend(
            lambda: session.page_context(destroys_on_navigation=True), store, config, session=session
        )

    return PersistentBrowserBackend(lambda: session.page_context(), config, session=session)
