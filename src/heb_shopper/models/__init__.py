"""
Models package - data schemas for the shopping agent.
"""

# Grocery list models
from .grocery_list import GroceryItem, ParsedGroceryList

# State models
from .state import (
    ItemState, RunState, LogEntry, PHASE_ORDER, TERMINAL_PHASES,
    ACTIVE_STATUSES, TERMINAL_STATUSES, can_transition
)

# Checkpoint
from .checkpoint import RunCheckpoint, CHECKPOINT_VERSION

# Events and driver messages
from .events import (
    PlanEvent, ItemStatusEvent, ItemErrorEvent, RunStatusEvent, LogEvent, RunEvent,
    ItemUpdateMessage, LogMessage, DriverMessage
)

# API models
from .api import StartRunRequest, StartRunResponse, APIError

__all__ = [
    # Grocery list
    "GroceryItem",
    "ParsedGroceryList",
    # State
    "ItemState",
    "RunState",
    "LogEntry",
    "PHASE_ORDER",
    "TERMINAL_PHASES",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "can_transition",
    # Checkpoint
    "RunCheckpoint",
    "CHECKPOINT_VERSION",
    # Events
    "PlanEvent",
    "ItemStatusEvent",
    "ItemErrorEvent",
    "RunStatusEvent",
    "LogEvent",
    "RunEvent",
    "ItemUpdateMessage",
    "LogMessage",
    "DriverMessage",
    # API
    "StartRunRequest",
    "StartRunResponse",
    "APIError",
]
