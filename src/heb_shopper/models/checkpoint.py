"""
Durable projection of a run, enough to resume after the driving page context
is torn down by a navigation.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime, timezone

from .grocery_list import GroceryItem
from .state import ItemPhase

CHECKPOINT_VERSION = 2


class RunCheckpoint(BaseModel):
    version: int = CHECKPOINT_VERSION
    run_id: str
    items: List[GroceryItem]
    current_index: int = Field(default=0, ge=0)
    phase: ItemPhase = "pending"
    # results page the current item navigated to; set with phase "searching"
    search_url: Optional[str] = None
    cancel_requested: bool = False
    # terminal phases of items[0:current_index]
    finished: List[ItemPhase] = Field(default_factory=list)
    written_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def exhausted(self) -> bool:
        return self.current_index >= len(self.items)

    def advance(self, outcome: ItemPhase) -> "RunCheckpoint":
        """Record the outcome of the current item and move to the next one."""
        return self.model_copy(update={
            "current_index": self.current_index + 1,
            "phase": "pending",
            "search_url": None,
            "finished": [*self.finished, outcome],
            "written_at": datetime.now(timezone.utc),
        })

    def at_phase(self, phase: ItemPhase, search_url: Optional[str] = None) -> "RunCheckpoint":
        return self.model_copy(update={
            "phase": phase,
            "search_url": search_url,
            "written_at": datetime.now(timezone.utc),
        })
