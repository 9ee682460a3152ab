"""
SQLite access for durable run checkpoints.
"""

import sqlite3
import logging
from pathlib import Path
from typing import Union

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


def get_db_connection(db_path: Union[str, Path]) -> sqlite3.Connection:
    """Get SQLite database connection, creating the parent directory if needed."""
    try:
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path), timeout=10, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to database: {db_path}")
        return conn
    except Exception as e:
        logger.error(f"Failed to connect to database: {e}")
        raise


def init_database(conn: sqlite3.Connection) -> None:
    """Initialize database schema."""
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS run_checkpoints (
                key TEXT PRIMARY KEY,
                run_id TEXT NOT NULL,
                version INTEGER NOT NULL,
                payload TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.commit()
        logger.info("Database schema created successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise
