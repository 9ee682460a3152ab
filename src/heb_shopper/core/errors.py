"""
Failure taxonomy for shopping runs.

Run-fatal: ParseEmpty, RunCancelled, ContextLost.
Item-local: ItemError and its subclasses; the run moves on to the next item.
"""

from typing import Optional, Sequence


class ShoppingError(Exception):
    """Base exception for the shopping agent."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class RunConflict(ShoppingError):
    """A run is already starting or in progress."""

    def __init__(self, active_run_id: Optional[str] = None):
        self.active_run_id = active_run_id
        super().__init__("A shopping run is already in progress.")


class ParseEmpty(ShoppingError):
    def __init__(self):
        super().__init__("No shoppable items were identified in the provided list.")


class RunCancelled(ShoppingError):
    def __init__(self, message: str = "Shopping run was cancelled."):
        super().__init__(message)


class ContextLost(ShoppingError):
    """The page context went away without leaving a checkpoint behind."""
    pass


class InvalidTransition(ShoppingError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Illegal phase transition {current} -> {target}")


class CheckpointError(ShoppingError):
    pass


class ItemError(ShoppingError):
    """Failure confined to a single item."""
    pass


class NotFound(ItemError):
    """None of the candidate locators matched in time."""

    def __init__(self, candidates: Sequence = (), timeout: float = 0.0, message: Optional[str] = None):
        self.candidates = list(candidates)
        self.timeout = timeout
        if message is None:
            message = f"No element matched {len(self.candidates)} candidate locators within {timeout:.1f}s"
        super().__init__(message)


class NoProductsFound(NotFound):
    pass


class NoAddControlFound(NotFound):
    pass
