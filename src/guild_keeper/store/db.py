"""
SQLite bootstrap and connection helpers
=======================================

- Path comes from configuration; parent directories are created on demand.
- WAL + pragmatic PRAGMAs for decent concurrent read perf.
"""

from __future__ import annotations

import pathlib
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from guild_keeper.config import cache as cache_cfg


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if isinstance(value, str) else value


def db_path() -> str:
    return cache_cfg.SQL_DB_PATH


def connect(path: Optional[str] = None) -> sqlite3.Connection:
    target = path or db_path()
    if target != ":memory:":
        pathlib.Path(target).parent.mkdir(parents=True, exist_ok=True)

    # Autocommit; writes group statements with `transaction()` in worker threads.
    conn = sqlite3.connect(
        target,
        isolation_level=None,
        check_same_thread=False,
    )

    # Pragmas: order matters a bit; set WAL first, then tuning.
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA temp_store=MEMORY;")
    # Reduce SQLITE_BUSY errors under contention
    conn.execute("PRAGMA busy_timeout=3000;")    # 3s

    # Unicode-aware case folding; the builtin NOCASE collation only folds ASCII.
    conn.create_function("casefold", 1, _casefold, deterministic=True)

    # dict-like rows
    conn.row_factory = sqlite3.Row

    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run the enclosed statements as one transaction.

    The connection is in autocommit mode, so ``with conn:`` alone never opens
    a transaction; a failure rolls back everything written inside the block.
    """
    conn.execute("BEGIN IMMEDIATE;")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK;")
        raise
    conn.execute("COMMIT;")


def migrate(conn: sqlite3.Connection) -> None:
    """
    Execute schema.sql (idempotent). Every statement in schema.sql uses
    IF NOT EXISTS so this is safe to run on each startup.
    """
    schema_file = pathlib.Path(__file__).with_name("schema.sql")
    sql = schema_file.read_text(encoding="utf-8")
    with conn:
        conn.executescript(sql)


def wal_checkpoint_truncate(conn: sqlite3.Connection) -> None:
    """Run a WAL checkpoint + truncate to keep WAL from growing unbounded."""
    conn.execute("PRAGMA wal_checkpoint(TRUNCATE);")
