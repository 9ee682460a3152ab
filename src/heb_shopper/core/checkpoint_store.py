"""
Checkpoint stores.

A single record lives under a well-known key and is overwritten wholesale on
every write. Writers replace the record inside one transaction, so readers
only ever see a complete checkpoint or none.
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from heb_shopper.models.checkpoint import RunCheckpoint, CHECKPOINT_VERSION
from .db import get_db_connection, init_database
from .errors import CheckpointError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

ACTIVE_KEY = "active-run"


class CheckpointStore:
    """Interface: save / load / clear the active run checkpoint."""

    def save(self, checkpoint: RunCheckpoint) -> None:
        raise NotImplementedError

    def load(self) -> Optional[RunCheckpoint]:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def describe(self) -> str:
        return type(self).__name__

    def close(self) -> None:
        pass


def _decode(payload: str) -> Optional[RunCheckpoint]:
    try:
        checkpoint = RunCheckpoint.model_validate_json(payload)
    except ValidationError as e:
        logger.warning(f"[CHECKPOINT] Discarding unreadable checkpoint: {e}")
        return None
    if checkpoint.version != CHECKPOINT_VERSION:
        logger.warning(
            f"[CHECKPOINT] Discarding checkpoint with version {checkpoint.version} "
            f"(expected {CHECKPOINT_VERSION})"
        )
        return None
    return checkpoint


class MemoryCheckpointStore(CheckpointStore):
    """Keeps the serialized record in memory; used by the long-lived variant and tests."""

    def __init__(self):
        self._payload: Optional[str] = None
        self._lock = threading.Lock()

    def save(self, checkpoint: RunCheckpoint) -> None:
        payload = checkpoint.model_dump_json()
        with self._lock:
            self._payload = payload
        logger.debug(f"[CHECKPOINT] Saved run {checkpoint.run_id} at index {checkpoint.current_index}")

    def load(self) -> Optional[RunCheckpoint]:
        with self._lock:
            payload = self._payload
        if payload is None:
            return None
        return _decode(payload)

    def clear(self) -> None:
        with self._lock:
            self._payload = None


class SqliteCheckpointStore(CheckpointStore):
    """Checkpoint record in the run_checkpoints table."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = str(db_path)
        self._lock = threading.Lock()
        self._conn = get_db_connection(self.db_path)
        init_database(self._conn)

    def describe(self) -> str:
        return f"sqlite:{self.db_path}"

    def save(self, checkpoint: RunCheckpoint) -> None:
        payload = checkpoint.model_dump_json()
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    """
                    INSERT INTO run_checkpoints (key, run_id, version, payload, updated_at)
                    VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        run_id = excluded.run_id,
                        version = excluded.version,
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                    """,
                    (ACTIVE_KEY, checkpoint.run_id, checkpoint.version, payload),
                )
        except Exception as e:
            logger.error(f"[CHECKPOINT] Failed to save checkpoint for run {checkpoint.run_id}: {e}")
            raise CheckpointError(f"Failed to save checkpoint: {e}") from e
        logger.debug(f"[CHECKPOINT] Saved run {checkpoint.run_id} at index {checkpoint.current_index}")

    def load(self) -> Optional[RunCheckpoint]:
        with self._lock:
            row = self._conn.execute(
                "SELECT payload FROM run_checkpoints WHERE key = ?", (ACTIVE_KEY,)
            ).fetchone()
        if row is None:
            return None
        return _decode(row["payload"])

    def clear(self) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM run_checkpoints WHERE key = ?", (ACTIVE_KEY,))
        logger.debug("[CHECKPOINT] Cleared")

    def close(self) -> None:
        with self._lock:
            self._conn.close()
