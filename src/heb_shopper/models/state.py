"""
Run and item state models.

ItemState and RunState are owned by the RunController; everything else only
sees copies (snapshots) of them.
"""

import uuid
import time
from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import datetime

from .grocery_list import GroceryItem

ItemPhase = Literal["pending", "searching", "evaluating", "adding-to-cart", "completed", "error"]
RunStatus = Literal["idle", "starting", "in-progress", "completed", "error"]
LogLevel = Literal["info", "warn", "error"]

PHASE_ORDER = ("pending", "searching", "evaluating", "adding-to-cart", "completed")
TERMINAL_PHASES = ("completed", "error")
ACTIVE_STATUSES = ("starting", "in-progress")
TERMINAL_STATUSES = ("completed", "error")


def can_transition(current: str, target: str) -> bool:
    """
    Forward-only phase rule: error from any non-terminal phase,
    otherwise strictly later in PHASE_ORDER.
    """
    if current in TERMINAL_PHASES:
        return False
    if target == "error":
        return True
    return PHASE_ORDER.index(target) > PHASE_ORDER.index(current)


class ItemState(BaseModel):
    """Progress of a single item within a run."""
    item: GroceryItem
    phase: ItemPhase = "pending"
    detail: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


class LogEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    level: LogLevel
    message: str
    timestamp: float = Field(default_factory=time.time)


class RunState(BaseModel):
    """Authoritative state of the (single) current run."""
    run_id: Optional[str] = None
    status: RunStatus = "idle"
    message: Optional[str] = None
    items: List[ItemState] = Field(default_factory=list)
    current_index: int = 0
    cancel_requested: bool = False
    logs: List[LogEntry] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    class Config:
        validate_assignment = True

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
