"""Knowledge-base index status and reindexing."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol, Set

from ..logger import LOGGER
from ..models import utc_now


@dataclass(frozen=True)
class SpaceStatus:
    key: str
    name: str
    last_updated_at: datetime
    docs: int
    errors: int
    reindexing: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "last_updated_at": self.last_updated_at.isoformat(),
            "updated_ago": time_ago(self.last_updated_at),
            "docs": self.docs,
            "errors": self.errors,
            "reindexing": self.reindexing,
        }


@dataclass(frozen=True)
class IndexStatus:
    spaces: List[SpaceStatus] = field(default_factory=list)
    last_global_update_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "spaces": [space.to_dict() for space in self.spaces],
            "last_global_update_at": (
                self.last_global_update_at.isoformat() if self.last_global_update_at else None
            ),
        }


class IndexStatusService(Protocol):
    async def get_status(self) -> IndexStatus:
        ...

    async def reindex(self, space_key: str) -> None:
        ...


def _minutes_ago(max_minutes: int) -> datetime:
    return utc_now() - timedelta(minutes=random.randint(1, max_minutes))


def time_ago(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Human-readable age, e.g. ``just now`` or ``7 minutes ago``."""
    minutes = int(((now or utc_now()) - timestamp).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes == 1:
        return "1 minute ago"
    return f"{minutes} minutes ago"


class MockIndexStatusService:
    """Two-space catalogue whose reindex finishes ``reindex_seconds`` later."""

    def __init__(self, reindex_seconds: float = 5.0) -> None:
        self.reindex_seconds = reindex_seconds
        self._spaces: Dict[str, SpaceStatus] = {
            "ITKB": SpaceStatus("ITKB", "IT Knowledge Base", _minutes_ago(15), docs=156, errors=0),
            "MON": SpaceStatus("MON", "Monitoring", _minutes_ago(8), docs=89, errors=2),
        }
        self._in_progress: Set[str] = set()
        self._tasks: Set["asyncio.Task[None]"] = set()

    async def get_status(self) -> IndexStatus:
        now = utc_now()
        spaces = [
            replace(space, last_updated_at=now, reindexing=True) if key in self._in_progress else space
            for key, space in self._spaces.items()
        ]
        oldest = min((space.last_updated_at for space in self._spaces.values()), default=None)
        return IndexStatus(spaces=spaces, last_global_update_at=oldest)

    async def reindex(self, space_key: str) -> None:
        """Start reindexing ``space_key``.

        Raises:
            KeyError: if the space is not in the catalogue.
        """
        if space_key not in self._spaces:
            raise KeyError(space_key)

        self._in_progress.add(space_key)
        LOGGER.info("Reindex of space %s started", space_key)
        if self.reindex_seconds <= 0:
            self.complete_reindex(space_key)
            return

        task = asyncio.get_running_loop().create_task(self._finish_later(space_key))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _finish_later(self, space_key: str) -> None:
        await asyncio.sleep(self.reindex_seconds)
        self.complete_reindex(space_key)

    def complete_reindex(self, space_key: str) -> None:
        self._in_progress.discard(space_key)
        space = self._spaces[space_key]
        self._spaces[space_key] = replace(
            space,
            last_updated_at=utc_now(),
            docs=space.docs + random.randint(0, 4),
            errors=random.randint(0, 2) if random.random() < 0.2 else 0,
        )
        LOGGER.info("Reindex of space %s finished: %d docs", space_key, self._spaces[space_key].docs)


__all__ = ["SpaceStatus", "IndexStatus", "IndexStatusService", "MockIndexStatusService", "time_ago"]
