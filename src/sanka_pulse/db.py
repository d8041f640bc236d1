# Sanka Pulse - Business insights engine for small businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Database layer for Sanka Pulse.

This module provides the low-level accessors used to persist and manage
generated insights in a SQLite database. It is responsible for:

- Initializing the database schema.
- Creating insight records (one row per generated insight).
- Loading single insights and listing the insight feed with filters.
- Updating the lifecycle flags of an insight (read, dismissed).

------------------------------------------------------------------------------
Schema Overview
------------------------------------------------------------------------------

insights
   One row per insight produced by the generation pipeline.

   Columns:
   - id            INTEGER PRIMARY KEY AUTOINCREMENT
   - title         TEXT    NOT NULL
   - message       TEXT    NOT NULL
   - type          TEXT    NOT NULL  -- "alert" | "opportunity" | "tip" | "achievement"
   - category      TEXT    NOT NULL  -- "sales" | "customers" | "inventory" | "finance"
   - priority      TEXT    NOT NULL  -- "low" | "medium" | "high" | "critical"
   - action_label  TEXT
   - insight_date  TEXT    NOT NULL  -- ISO date "YYYY-MM-DD"
   - is_read       INTEGER NOT NULL DEFAULT 0
   - is_dismissed  INTEGER NOT NULL DEFAULT 0
   - created_at    TEXT    NOT NULL  -- UTC timestamp of creation
   - updated_at    TEXT              -- UTC timestamp of last flag change

   Insights are never deleted: dismissing an insight only hides it from the
   default feed.

------------------------------------------------------------------------------
SQLite Notes
------------------------------------------------------------------------------

- All timestamps are stored as ISO-8601 text (UTC).
- Each public function opens and closes its own connection, so the module
  can be used from the CLI and from tests without any shared state.
- Concurrent writers are serialized by SQLite itself.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path

import pandas as pd

from .models import Insight, NewInsight

# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for Sanka Pulse.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


_INSIGHT_COLUMNS = (
    "id, title, message, type, category, priority, action_label, "
    "insight_date, is_read, is_dismissed, created_at, updated_at"
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    return sqlite3.connect(cfg.path)


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """
    Create tables and indexes if they do not exist yet.

    This function is idempotent and can be called multiple times safely.
    """
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS insights (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            title         TEXT    NOT NULL,
            message       TEXT    NOT NULL,
            type          TEXT    NOT NULL,
            category      TEXT    NOT NULL,
            priority      TEXT    NOT NULL,
            action_label  TEXT,
            insight_date  TEXT    NOT NULL,  -- ISO date 'YYYY-MM-DD'
            is_read       INTEGER NOT NULL DEFAULT 0,
            is_dismissed  INTEGER NOT NULL DEFAULT 0,
            created_at    TEXT    NOT NULL,
            updated_at    TEXT
        );
        """
    )

    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_insights_feed
            ON insights(is_dismissed, created_at);
        """
    )

    conn.commit()


def _now_utc_iso() -> str:
    """Return the current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _row_to_insight(row: tuple) -> Insight:
    """
    Convert a database row into an Insight instance.

    Expected row layout (in order):
      (id, title, message, type, category, priority, action_label,
       insight_date, is_read, is_dismissed, created_at, updated_at)
    """
    (
        insight_id,
        title,
        message,
        insight_type,
        category,
        priority,
        action_label,
        insight_date_str,
        is_read_int,
        is_dismissed_int,
        created_at_str,
        updated_at_str,
    ) = row

    created_at = (
        datetime.fromisoformat(created_at_str) if created_at_str is not None else None
    )
    updated_at = (
        datetime.fromisoformat(updated_at_str) if updated_at_str is not None else None
    )

    return Insight(
        id=insight_id,
        title=title,
        message=message,
        type=insight_type,
        category=category,
        priority=priority,
        action_label=action_label,
        insight_date=date.fromisoformat(insight_date_str),
        is_read=bool(is_read_int),
        is_dismissed=bool(is_dismissed_int),
        created_at=created_at,
        updated_at=updated_at,
    )


def _set_flag(cfg: DatabaseConfig, insight_id: int, column: str) -> Insight:
    """Set a lifecycle flag (is_read / is_dismissed) and reload the insight."""
    if column not in {"is_read", "is_dismissed"}:
        raise ValueError(f"Unknown insight flag: {column!r}")

    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            f"""
            UPDATE insights
               SET {column}   = 1,
                   updated_at = ?
             WHERE id = ?;
            """,
            (_now_utc_iso(), insight_id),
        )
        updated = cur.rowcount
        conn.commit()
    finally:
        conn.close()

    if updated == 0:
        raise LookupError(f"Insight #{insight_id} does not exist.")

    result = get_insight(cfg, insight_id)
    if result is None:
        msg = f"Insight #{insight_id} was updated but could not be reloaded."
        raise RuntimeError(msg)
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if it does not exist.
    - Creates the insights table and its index if they are missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    sqlite3.Error
        If schema creation fails.
    """
    _ensure_sqlite(cfg)
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(cfg)
    try:
        _create_schema_if_needed(conn)
    finally:
        conn.close()


def create_insight(cfg: DatabaseConfig, new_insight: NewInsight) -> Insight:
    """
    Insert a single insight and return it with its assigned id.

    Parameters
    ----------
    cfg:
        Database configuration.
    new_insight:
        Normalized insight to persist.

    Returns
    -------
    Insight
        The stored insight.
    """
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO insights (
                title,
                message,
                type,
                category,
                priority,
                action_label,
                insight_date,
                is_read,
                is_dismissed,
                created_at,
                updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL);
            """,
            (
                new_insight.title,
                new_insight.message,
                new_insight.type,
                new_insight.category,
                new_insight.priority,
                new_insight.action_label,
                new_insight.insight_date.isoformat(),
                int(new_insight.is_read),
                int(new_insight.is_dismissed),
                _now_utc_iso(),
            ),
        )
        insight_id = cur.lastrowid
        conn.commit()
    finally:
        conn.close()

    result = get_insight(cfg, insight_id)
    if result is None:
        msg = f"Insight #{insight_id} was inserted but could not be reloaded."
        raise RuntimeError(msg)
    return result


def get_insight(cfg: DatabaseConfig, insight_id: int) -> Insight | None:
    """
    Load a single insight by id.

    Returns
    -------
    Insight | None
        The matching insight, or None if not found.
    """
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_INSIGHT_COLUMNS} FROM insights WHERE id = ?;",
            (insight_id,),
        )
        row = cur.fetchone()
    finally:
        conn.close()

    if row is None:
        return None
    return _row_to_insight(row)


def list_insights(
    cfg: DatabaseConfig,
    *,
    include_dismissed: bool = False,
    category: str | None = None,
    unread_only: bool = False,
    limit: int | None = None,
) -> list[Insight]:
    """
    List stored insights, newest first.

    By default only non-dismissed insights are returned, which is the feed
    shown on the Pulse dashboard.

    Parameters
    ----------
    include_dismissed:
        Also return dismissed insights.
    category:
        Restrict to a single category ("sales", "customers", ...).
    unread_only:
        Only return insights not yet marked as read.
    limit:
        Maximum number of insights to return.
    """
    init_database(cfg)

    clauses: list[str] = []
    params: list[object] = []

    if not include_dismissed:
        clauses.append("is_dismissed = 0")
    if category is not None:
        clauses.append("category = ?")
        params.append(category)
    if unread_only:
        clauses.append("is_read = 0")

    sql = f"SELECT {_INSIGHT_COLUMNS} FROM insights"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY created_at DESC, id DESC"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(int(limit))

    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(sql + ";", params)
        rows = cur.fetchall()
    finally:
        conn.close()

    return [_row_to_insight(row) for row in rows]


def mark_insight_read(cfg: DatabaseConfig, insight_id: int) -> Insight:
    """
    Mark an insight as read.

    Raises
    ------
    LookupError
        If the insight does not exist.
    """
    return _set_flag(cfg, insight_id, "is_read")


def dismiss_insight(cfg: DatabaseConfig, insight_id: int) -> Insight:
    """
    Dismiss an insight so that it no longer appears in the default feed.

    Raises
    ------
    LookupError
        If the insight does not exist.
    """
    return _set_flag(cfg, insight_id, "is_dismissed")


def insights_to_dataframe(insights: Iterable[Insight]) -> pd.DataFrame:
    """
    Convert insights into a DataFrame for console display or CSV export.

    Columns: id, insight_date, category, type, priority, title, message,
    action_label, is_read, is_dismissed.
    """
    columns = [
        "id",
        "insight_date",
        "category",
        "type",
        "priority",
        "title",
        "message",
        "action_label",
        "is_read",
        "is_dismissed",
    ]
    rows = [
        {
            "id": i.id,
            "insight_date": i.insight_date.isoformat(),
            "category": i.category,
            "type": i.type,
            "priority": i.priority,
            "title": i.title,
            "message": i.message,
            "action_label": i.action_label or "",
            "is_read": i.is_read,
            "is_dismissed": i.is_dismissed,
        }
        for i in insights
    ]
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows, columns=columns)


class SQLiteInsightStore:
    """Insight store backed by the SQLite database, as used by the pipeline."""

    def __init__(self, cfg: DatabaseConfig):
        self.cfg = cfg
        init_database(cfg)

    def create(self, new_insight: NewInsight) -> Insight:
        return create_insight(self.cfg, new_insight)
