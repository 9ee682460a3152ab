"""
Core module initialization.
"""

from .errors import (
    ShoppingError,
    RunConflict,
    ParseEmpty,
    RunCancelled,
    ContextLost,
    InvalidTransition,
    CheckpointError,
    ItemError,
    NotFound,
    NoProductsFound,
    NoAddControlFound,
)

from .retry_utils import retry_with_backoff, RetryConfig, TransientError, PermanentError

from .cancellation import CancelToken

from .checkpoint_store import CheckpointStore, MemoryCheckpointStore, SqliteCheckpointStore

from .list_parser import ListParser, parse_shopping_list

from .selector_resolver import (
    Locator,
    SelectorResolver,
    PRODUCT_CARD_LOCATORS,
    PRODUCT_NAME_SELECTORS,
    ADD_CONTROL_LOCATORS,
)

__all__ = [
    # Errors
    "ShoppingError",
    "RunConflict",
    "ParseEmpty",
    "RunCancelled",
    "ContextLost",
    "InvalidTransition",
    "CheckpointError",
    "ItemError",
    "NotFound",
    "NoProductsFound",
    "NoAddControlFound",
    # Retry
    "retry_with_backoff",
    "RetryConfig",
    "TransientError",
    "PermanentError",
    # Cancellation
    "CancelToken",
    # Checkpoints
    "CheckpointStore",
    "MemoryCheckpointStore",
    "SqliteCheckpointStore",
    # Parsing
    "ListParser",
    "parse_shopping_list",
    # Selectors
    "Locator",
    "SelectorResolver",
    "PRODUCT_CARD_LOCATORS",
    "PRODUCT_NAME_SELECTORS",
    "ADD_CONTROL_LOCATORS",
]
