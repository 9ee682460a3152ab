"""
Page contexts the item driver runs against.

PageContext / PageElement are the small surface the driver needs. The
Playwright adapters back them with a persistent Chromium profile so the user
stays signed into the store between runs.
"""

import logging
from pathlib import Path
from typing import List, Optional

from playwright.sync_api import BrowserContext, ElementHandle, Page, Playwright, sync_playwright

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
window.chrome = window.chrome || { runtime: {} };
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
"""


class PageElement:
    """A live element; scope for nested lookups."""

    def query_all(self, selector: str) -> List["PageElement"]:
        raise NotImplementedError

    def text_content(self) -> str:
        raise NotImplementedError

    def hover(self) -> None:
        raise NotImplementedError

    def dispatch(self, event_type: str) -> None:
        raise NotImplementedError


class PageContext:
    """
    The document the driver is attached to.

    destroys_on_navigation is True when navigating tears down the code that
    called navigate(), so work must be checkpointed before navigating.
    """

    destroys_on_navigation = False

    def navigate(self, url: str) -> None:
        raise NotImplementedError

    def wait_for_load(self, timeout: float) -> None:
        raise NotImplementedError

    def query_all(self, selector: str) -> List[PageElement]:
        raise NotImplementedError

    @property
    def url(self) -> str:
        raise NotImplementedError


class PlaywrightElement(PageElement):
    def __init__(self, handle: ElementHandle):
        self.handle = handle

    def query_all(self, selector: str) -> List[PageElement]:
        return [PlaywrightElement(h) for h in self.handle.query_selector_all(selector)]

    def text_content(self) -> str:
        return (self.handle.text_content() or "").strip()

    def hover(self) -> None:
        self.handle.hover()

    def dispatch(self, event_type: str) -> None:
        self.handle.dispatch_event(event_type, {"bubbles": True, "cancelable": True})


class PlaywrightPageContext(PageContext):
    def __init__(self, page: Page, destroys_on_navigation: bool = False):
        self.page = page
        self.destroys_on_navigation = destroys_on_navigation

    def navigate(self, url: str) -> None:
        logger.info(f"[BROWSER] Navigating to {url}")
        self.page.goto(url, wait_until="domcontentloaded")

    def wait_for_load(self, timeout: float) -> None:
        self.page.wait_for_load_state("load", timeout=timeout * 1000)
        try:
            self.page.wait_for_load_state("networkidle", timeout=timeout * 1000)
        except Exception as e:
            # busy pages may never go idle; the selector waits cover the rest
            logger.debug(f"[BROWSER] Network did not settle: {e}")

    def query_all(self, selector: str) -> List[PageElement]:
        return [PlaywrightElement(h) for h in self.page.query_selector_all(selector)]

    @property
    def url(self) -> str:
        return self.page.url


class BrowserSession:
    """
    Persistent Chromium session.

    Sync Playwright objects are bound to the thread that started them; the
    controller only touches a session from its single worker thread.
    """

    def __init__(
        self,
        user_data_dir: str,
        headless: bool = False,
        navigation_timeout_seconds: float = 20.0,
        start_url: Optional[str] = None,
    ):
        self.user_data_dir = user_data_dir
        self.headless = headless
        self.navigation_timeout_seconds = navigation_timeout_seconds
        self.start_url = start_url
        self._playwright: Optional[Playwright] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @property
    def is_open(self) -> bool:
        return self._page is not None

    def open(self) -> Page:
        if self._page is not None:
            return self._page

        profile_path = Path(self.user_data_dir)
        profile_path.mkdir(parents=True, exist_ok=True)

        self._playwright = sync_playwright().start()
        self._context = self._playwright.chromium.launch_persistent_context(
            str(profile_path),
            headless=self.headless,
        )
        self._context.add_init_script(STEALTH_INIT_SCRIPT)

        self._page = self._context.pages[0] if self._context.pages else self._context.new_page()
        self._page.set_default_timeout(self.navigation_timeout_seconds * 1000)
        logger.info(f"[BROWSER] Launched persistent Chromium (profile: {profile_path})")

        if self.start_url:
            try:
                self._page.goto(self.start_url, wait_until="domcontentloaded")
            except Exception as e:
                logger.warning(f"[BROWSER] Could not open {self.start_url}: {e}")
        return self._page

    def page_context(self, destroys_on_navigation: bool = False) -> PlaywrightPageContext:
        return PlaywrightPageContext(self.open(), destroys_on_navigation=destroys_on_navigation)

    def close(self) -> None:
        """Best-effort shutdown; failures are logged, never raised."""
        try:
            if self._context:
                self._context.close()
        except Exception as e:
            logger.warning(f"[BROWSER] Failed to close browser context: {e}")
        finally:
            try:
                if self._playwright:
                    self._playwright.stop()
            except Exception as e:
                logger.warning(f"[BROWSER] Failed to stop Playwright: {e}")
            self._playwright = None
            self._context = None
            self._page = None
