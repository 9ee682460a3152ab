"""
Agents module initialization.
"""

from .planner import create_run_plan
from .executor import DriverReporter, ItemDriver, ItemWorkflow, ItemOutcome, POINTER_SEQUENCE
from .page_script import PageScript, IDLE, NAVIGATED, FINISHED
from .backends import AutomationBackend, PersistentBrowserBackend, PageScriptBackend, create_backend
from .observer import ObserverChannel, Subscription
from .controller import RunController

__all__ = [
    "create_run_plan",
    "DriverReporter",
    "ItemDriver",
    "ItemWorkflow",
    "ItemOutcome",
    "POINTER_SEQUENCE",
    "PageScript",
    "IDLE",
    "NAVIGATED",
    "FINISHED",
    "AutomationBackend",
    "PersistentBrowserBackend",
    "PageScriptBackend",
    "create_backend",
    "ObserverChannel",
    "Subscription",
    "RunController",
]
