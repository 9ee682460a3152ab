"""
Event and message protocol between controller, drivers and observers.

Events flow controller -> observers. Messages flow driver -> controller;
the controller is the only writer of RunState and turns messages into events.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Literal, Union

from .grocery_list import GroceryItem
from .state import ItemPhase, RunStatus, LogLevel


class RunEventBase(BaseModel):
    run_id: Optional[str] = None
    seq: int = 0


class PlanEvent(RunEventBase):
    type: Literal["plan"] = "plan"
    items: List[GroceryItem]


class ItemStatusEvent(RunEventBase):
    type: Literal["item-status"] = "item-status"
    index: int
    item: GroceryItem
    phase: ItemPhase
    detail: Optional[str] = None


class ItemErrorEvent(RunEventBase):
    type: Literal["item-error"] = "item-error"
    index: int
    item: GroceryItem
    error: str


class RunStatusEvent(RunEventBase):
    type: Literal["run-status"] = "run-status"
    status: RunStatus
    message: Optional[str] = None


class LogEvent(RunEventBase):
    type: Literal["log"] = "log"
    level: LogLevel
    message: str


RunEvent = Union[PlanEvent, ItemStatusEvent, ItemErrorEvent, RunStatusEvent, LogEvent]


# Driver -> controller messages

class ItemUpdateMessage(BaseModel):
    type: Literal["ITEM_UPDATE"] = "ITEM_UPDATE"
    run_id: str
    item_index: int = Field(ge=0)
    phase: ItemPhase
    detail: Optional[str] = None
    error: Optional[str] = None


class LogMessage(BaseModel):
    type: Literal["LOG"] = "LOG"
    run_id: str
    level: LogLevel
    message: str


DriverMessage = Union[ItemUpdateMessage, LogMessage]
