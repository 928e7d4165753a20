"""Persistent key-value blob stores for the assistant state.

The blob holds exactly: ``current_user``, ``user_role``, ``environment``,
``session``, ``escalation_queue`` and ``events``. Stores only move the blob;
shaping it is :class:`supportbot.state.AppState`'s job.

Usage:
    store = JsonFileStore(Path("data/state.json"))
    blob = store.load()          # None on first start
    store.save({...})            # replaces the whole blob
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from .logger import LOGGER

StateBlob = Dict[str, Any]


class PersistentStore(Protocol):
    def load(self) -> Optional[StateBlob]:
        ...

    def save(self, blob: StateBlob) -> None:
        ...


class InMemoryStore:
    """Process-local store; used by tests and the ``memory`` backend."""

    def __init__(self, initial: Optional[StateBlob] = None) -> None:
        self._blob: Optional[StateBlob] = copy.deepcopy(initial) if initial is not None else None
        self.save_count = 0

    def load(self) -> Optional[StateBlob]:
        return copy.deepcopy(self._blob) if self._blob is not None else None

    def save(self, blob: StateBlob) -> None:
        self._blob = copy.deepcopy(blob)
        self.save_count += 1


class JsonFileStore:
    """State blob in a single JSON file.

    Writes go to a sibling temp file that is then moved over the target, so a
    crash mid-write never leaves a truncated state file behind.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        LOGGER.debug("JsonFileStore initialized: %s", self.path)

    def load(self) -> Optional[StateBlob]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            LOGGER.warning("Failed to load state from %s, starting fresh: %s", self.path, exc)
            return None
        if not isinstance(data, dict):
            LOGGER.warning("Ignoring state file %s: expected an object", self.path)
            return None
        return data

    def save(self, blob: StateBlob) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(blob, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)


class PostgresStore:
    """State blob as one JSONB row per namespace in PostgreSQL (psycopg 3)."""

    TABLE = "supportbot_state"

    def __init__(self, database_url: str, namespace: str = "default") -> None:
        from psycopg.rows import dict_row
        from psycopg_pool import ConnectionPool

        self.namespace = namespace
        LOGGER.info("Initializing PostgreSQL connection pool...")
        self._pool = ConnectionPool(
            conninfo=database_url,
            min_size=1,
            max_size=4,
            open=True,
            kwargs={"row_factory": dict_row},
        )
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._pool.connection() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TABLE} (
                    namespace TEXT PRIMARY KEY,
                    blob JSONB NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
                )
                """
            )

    def load(self) -> Optional[StateBlob]:
        with self._pool.connection() as conn:
            row = conn.execute(
                f"SELECT blob FROM {self.TABLE} WHERE namespace = %s",
                (self.namespace,),
            ).fetchone()
        return row["blob"] if row else None

    def save(self, blob: StateBlob) -> None:
        from psycopg.types.json import Jsonb

        with self._pool.connection() as conn:
            conn.execute(
                f"""
                INSERT INTO {self.TABLE} (namespace, blob, updated_at)
                VALUES (%s, %s, now())
                ON CONFLICT (namespace) DO UPDATE
                SET blob = EXCLUDED.blob, updated_at = EXCLUDED.updated_at
                """,
                (self.namespace, Jsonb(blob)),
            )

    def close(self) -> None:
        LOGGER.info("Closing PostgreSQL connection pool...")
        self._pool.close()


__all__ = ["StateBlob", "PersistentStore", "InMemoryStore", "JsonFileStore", "PostgresStore"]
