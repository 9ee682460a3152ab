"""
Planning agent - turns raw list text into the ordered item plan for a run.
"""

import logging
from typing import Callable, Optional, Tuple

from heb_shopper.models.grocery_list import ParsedGroceryList
from heb_shopper.core.list_parser import ListParser

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


def create_run_plan(
    raw_list: str,
    parser: Optional[ListParser] = None,
    cleaner=None,
    clean_with_ai: bool = False,
    log: Optional[Callable[[str, str], None]] = None,
) -> ParsedGroceryList:
    """
    Parse the list (optionally after AI cleanup) into ordered GroceryItems.

    Args:
        raw_list: Text exactly as the user typed it
        parser: ListParser implementation
        cleaner: Object with clean(text) -> CleanupResult, used when clean_with_ai
        clean_with_ai: Whether to run the cleaner first
        log: Callback(level, message) for run log events

    Returns:
        ParsedGroceryList; items may be empty
    """
    parser = parser or ListParser()
    log = log or (lambda level, message: None)
    text = raw_list
    cleaned = False

    if clean_with_ai:
        if cleaner is None:
            log("warn", "AI cleanup requested but no cleaner is configured; using the list as typed.")
        else:
            result = cleaner.clean(raw_list)
            if result.used_ai:
                text = result.cleaned_text
                cleaned = True
                changed = sum(1 for c in result.changes if c.type != "unchanged")
                log("info", f"AI cleanup changed {changed} line(s).")
            else:
                log("warn", f"{result.error or 'AI cleanup failed'}; using the list as typed.")

    items = parser.parse(text)
    logger.info(f"[PLANNER] Parsed {len(items)} item(s)")
    return ParsedGroceryList(items=items, original_input=raw_list, cleaned_with_ai=cleaned)
