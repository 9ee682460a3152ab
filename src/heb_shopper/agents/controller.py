"""
Run controller - sole owner of the authoritative RunState.

Accepts start / cancel commands, hands the item list to an automation backend
on a single worker thread, applies the driver messages it gets back, and fans
every state change out to observers as events. At most one run is starting or
in progress at any time.
"""

import uuid
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, Future, TimeoutError as FutureTimeout
from datetime import datetime, timezone
from typing import Optional

from heb_shopper.config import ShopperConfig
from heb_shopper.models.state import RunState, ItemState, LogEntry, can_transition
from heb_shopper.models.events import (
    PlanEvent, ItemStatusEvent, ItemErrorEvent, RunStatusEvent, LogEvent,
    ItemUpdateMessage, LogMessage,
)
from heb_shopper.core.cancellation import CancelToken
from heb_shopper.core.checkpoint_store import CheckpointStore
from heb_shopper.core.errors import (
    RunConflict, ParseEmpty, RunCancelled, ContextLost, ShoppingError, InvalidTransition
)
from heb_shopper.core.list_parser import ListParser
from .backends import AutomationBackend
from .observer import ObserverChannel, Subscription
from .planner import create_run_plan

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

UNRECOVERABLE_MESSAGE = "The automation encountered an unrecoverable error."
COMPLETED_MESSAGE = "Shopping run completed."

_LOG_LEVELS = {"info": logging.INFO, "warn": logging.WARNING, "error": logging.ERROR}


class RunController:
    def __init__(
        self,
        backend: AutomationBackend,
        channel: Optional[ObserverChannel] = None,
        parser: Optional[ListParser] = None,
        cleaner=None,
        store: Optional[CheckpointStore] = None,
        config: Optional[ShopperConfig] = None,
    ):
        self.backend = backend
        self.channel = channel or ObserverChannel()
        self.parser = parser or ListParser()
        self.cleaner = cleaner
        self.store = store if store is not None else backend.store
        self.config = config or ShopperConfig()

        self._lock = threading.RLock()
        self._state = RunState()
        self._token: Optional[CancelToken] = None
        self._future: Optional[Future] = None
        self._seq = 0
        self._closed = False
        # sync Playwright objects must stay on the thread that created them
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="shopping-run")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def snapshot(self) -> RunState:
        with self._lock:
            return self._state.model_copy(deep=True)

    @property
    def status(self) -> str:
        with self._lock:
            return self._state.status

    def attach(self, run_id: Optional[str] = None) -> Subscription:
        """Snapshot plus subscription, taken atomically with respect to publishing."""
        with self._lock:
            return self.channel.attach(self._state.model_copy(deep=True), run_id=run_id)

    def detach(self, subscription: Subscription) -> None:
        self.channel.detach(subscription)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the worker finishes the current run. True if it did."""
        future = self._future
        if future is None:
            return True
        try:
            future.result(timeout=timeout)
        except FutureTimeout:
            return False
        return True

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self, raw_list: str, clean_with_ai: bool = False) -> str:
        """
        Start a run for the given list text.

        Returns:
            The new run id (also when the list turned out empty and the run
            went straight to error)

        Raises:
            RunConflict: another run is starting or in progress
        """
        with self._lock:
            if self._state.is_active:
                raise RunConflict(self._state.run_id)

            run_id = str(uuid.uuid4())
            self._token = CancelToken()
            self._seq = 0
            self._state = RunState(run_id=run_id, status="starting", started_at=datetime.now(timezone.utc))
            self._emit(RunStatusEvent(status="starting"))
            logger.info(f"[CONTROLLER] Run {run_id} starting")

        try:
            plan = create_run_plan(
                raw_list,
                parser=self.parser,
                cleaner=self.cleaner,
                clean_with_ai=clean_with_ai,
                log=lambda level, message: self._log_for(run_id, level, message),
            )
        except Exception as e:
            logger.exception(f"[CONTROLLER] Planning failed for run {run_id}")
            self._finish(run_id, "error", f"Could not read the shopping list: {e}")
            return run_id

        with self._lock:
            if self._state.run_id != run_id:
                return run_id

            if not plan.items:
                error = ParseEmpty()
                self._log("error", error.message)
                self._finish(run_id, "error", error.message)
                return run_id

            self._state.items = [ItemState(item=item) for item in plan.items]
            self._emit(PlanEvent(items=plan.items))
            self._log("info", f"Starting shopping with {len(plan.items)} items")

            if self._token.cancelled:
                self._finish(run_id, "error", RunCancelled().message, cancelled=True)
                return run_id

            self._state.status = "in-progress"
            self._emit(RunStatusEvent(status="in-progress"))
            self._future = self._worker.submit(self._execute, run_id, 0, False)

        return run_id

    def cancel(self, run_id: Optional[str] = None) -> bool:
        """
        Request cooperative cancellation. Fire-and-forget: returns False when
        there is no matching active run, never raises.
        """
        with self._lock:
            if not self._state.is_active:
                return False
            if run_id is not None and run_id != self._state.run_id:
                logger.info(f"[CONTROLLER] Ignoring cancel for unknown run {run_id}")
                return False
            if self._state.cancel_requested:
                return True

            self._state.cancel_requested = True
            self._token.cancel()
            self._log("warn", "Cancellation requested")
            return True

    def reset(self) -> None:
        """Return to idle after a finished run; refuses while one is active."""
        with self._lock:
            if self._state.is_active:
                raise RunConflict(self._state.run_id)
            self._state = RunState()
            self._clear_checkpoint()

    def recover(self) -> Optional[str]:
        """
        Adopt a run left behind in the checkpoint store (process restart).

        Returns:
            The adopted run id, or None when there was nothing to resume
        """
        if self.store is None:
            return None
        checkpoint = self.store.load()
        if checkpoint is None:
            return None

        with self._lock:
            if self._state.is_active:
                raise RunConflict(self._state.run_id)

            run_id = checkpoint.run_id
            self._token = CancelToken()
            self._seq = 0
            items = []
            for index, item in enumerate(checkpoint.items):
                if index < checkpoint.current_index:
                    phase = checkpoint.finished[index] if index < len(checkpoint.finished) else "error"
                    error = "Outcome was not recorded" if phase == "error" else None
                    items.append(ItemState(item=item, phase=phase, error=error))
                elif index == checkpoint.current_index:
                    items.append(ItemState(item=item, phase=checkpoint.phase))
                else:
                    items.append(ItemState(item=item))

            self._state = RunState(
                run_id=run_id,
                status="in-progress",
                items=items,
                current_index=checkpoint.current_index,
                cancel_requested=checkpoint.cancel_requested,
                started_at=datetime.now(timezone.utc),
            )
            self._emit(PlanEvent(items=checkpoint.items))
            self._emit(RunStatusEvent(status="in-progress", message="Resumed from checkpoint."))
            self._log("info", f"Resuming run at item {checkpoint.current_index + 1} of {len(items)}")

            if checkpoint.cancel_requested:
                self._token.cancel()
                self._finish(run_id, "error", RunCancelled().message, cancelled=True)
                return run_id
            if checkpoint.exhausted:
                self._finish(run_id, "completed", COMPLETED_MESSAGE)
                return run_id

            self._future = self._worker.submit(self._execute, run_id, checkpoint.current_index, True)
            return run_id

    def shutdown(self, timeout: float = 30.0) -> None:
        """Cancel any run, close the backend on the worker thread, stop the worker."""
        if self._closed:
            return
        self._closed = True
        self.cancel()
        self.wait(timeout=timeout)
        try:
            self._worker.submit(self.backend.shutdown).result(timeout=timeout)
        except Exception as e:
            logger.warning(f"[CONTROLLER] Backend shutdown failed: {e}")
        self._worker.shutdown(wait=False)
        if self.store is not None:
            self.store.close()

    # ------------------------------------------------------------------
    # Driver -> controller protocol
    # ------------------------------------------------------------------

    def handle_message(self, message) -> None:
        with self._lock:
            if message.run_id != self._state.run_id or not self._state.is_active:
                logger.debug(f"[CONTROLLER] Dropping stale {message.type} for run {message.run_id}")
                return
            if isinstance(message, LogMessage):
                self._log(message.level, message.message)
            elif isinstance(message, ItemUpdateMessage):
                self._apply_item_update(message)
            else:
                logger.warning(f"[CONTROLLER] Unknown driver message: {message!r}")

    def _apply_item_update(self, message: ItemUpdateMessage) -> None:
        state = self._state
        index = message.item_index
        if index >= len(state.items):
            logger.warning(f"[CONTROLLER] Update for unknown item index {index}")
            return

        item_state = state.items[index]
        if message.phase == item_state.phase:
            # re-entry after a resume; keep the newest wording, no new event
            if message.detail:
                item_state.detail = message.detail
            return

        if not can_transition(item_state.phase, message.phase):
            error = InvalidTransition(item_state.phase, message.phase)
            logger.warning(f"[CONTROLLER] Item {index}: {error.message}; update ignored")
            return

        item_state.phase = message.phase
        if message.phase == "error":
            item_state.error = message.error or "Unknown error"
            item_state.detail = None
        else:
            item_state.detail = message.detail

        if index > state.current_index:
            state.current_index = index
        if item_state.is_terminal:
            state.current_index = max(state.current_index, index + 1)

        self._emit(ItemStatusEvent(
            index=index, item=item_state.item, phase=item_state.phase, detail=item_state.detail
        ))
        if message.phase == "error":
            self._emit(ItemErrorEvent(index=index, item=item_state.item, error=item_state.error))

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _execute(self, run_id: str, start_index: int, resume: bool) -> None:
        with self._lock:
            items = [s.item for s in self._state.items]
            token = self._token

        try:
            self.backend.execute(
                run_id, items, start_index,
                send=self.handle_message,
                cancel_token=token,
                resume=resume,
            )
        except RunCancelled as e:
            self._finish(run_id, "error", e.message, cancelled=True)
        except ContextLost as e:
            self._log_for(run_id, "error", e.message)
            self._finish(run_id, "error", e.message)
        except ShoppingError as e:
            self._log_for(run_id, "error", e.message)
            self._finish(run_id, "error", e.message)
        except Exception as e:
            logger.exception(f"[CONTROLLER] Run {run_id} crashed")
            self._log_for(run_id, "error", f"Run failed: {e}")
            self._finish(run_id, "error", UNRECOVERABLE_MESSAGE)
        else:
            self._finish(run_id, "completed", COMPLETED_MESSAGE)

    def _finish(self, run_id: str, status: str, message: str, cancelled: bool = False) -> None:
        with self._lock:
            state = self._state
            if state.run_id != run_id or not state.is_active:
                return

            if status == "error":
                # no item may be left mid-flight once the run is over
                reason = "Cancelled" if cancelled else message
                for index, item_state in enumerate(state.items):
                    if item_state.phase not in ("pending", "completed", "error"):
                        item_state.phase = "error"
                        item_state.error = reason
                        item_state.detail = None
                        self._emit(ItemStatusEvent(index=index, item=item_state.item, phase="error"))
                        self._emit(ItemErrorEvent(index=index, item=item_state.item, error=reason))
            if cancelled:
                self._log("warn", "Shopping run cancelled by user")
            elif status == "completed":
                self._log("info", COMPLETED_MESSAGE)

            self._clear_checkpoint()
            state.status = status
            state.message = message
            state.finished_at = datetime.now(timezone.utc)
            logger.info(f"[CONTROLLER] Run {run_id} finished: {status} ({message})")
            self._emit(RunStatusEvent(status=status, message=message))

    # ------------------------------------------------------------------
    # Helpers (callers hold the lock unless noted)
    # ------------------------------------------------------------------

    def _emit(self, event) -> None:
        self._seq += 1
        event.run_id = self._state.run_id
        event.seq = self._seq
        self.channel.publish(event)

    def _log(self, level: str, message: str) -> None:
        logger.log(_LOG_LEVELS.get(level, logging.INFO), f"[RUN {self._state.run_id}] {message}")
        self._state.logs.append(LogEntry(level=level, message=message))
        if len(self._state.logs) > self.config.max_log_entries:
            self._state.logs = self._state.logs[-self.config.max_log_entries:]
        self._emit(LogEvent(level=level, message=message))

    def _log_for(self, run_id: str, level: str, message: str) -> None:
        """Log into run_id if it is still the active run; takes the lock."""
        with self._lock:
            if self._state.run_id == run_id and self._state.is_active:
                self._log(level, message)

    def _clear_checkpoint(self) -> None:
        if self.store is None:
            return
        try:
            self.store.clear()
        except Exception as e:
            logger.warning(f"[CONTROLLER] Could not clear checkpoint: {e}")
