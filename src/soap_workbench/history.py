"""Persistent search history for descriptor lookups.

Successful describe requests are remembered in a small JSON file so users can
re-run earlier searches. Two searches are considered the same when they name
the same primary source (trimmed, case-insensitive), use the same import
setting, and list the same additional sources in any order. Saving an equal
search refreshes its timestamp but keeps its identifier.

Example:
    store = SearchHistoryStore(Path("~/.soap-workbench/history.json").expanduser())
    await store.save(SearchHistoryEntry(primary_source="https://example.com/a?wsdl"))
    latest = (await store.get_all())[0]
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

HISTORY_ENV_VAR = "SOAP_WORKBENCH_HISTORY_PATH"
DEFAULT_HISTORY_PATH = Path.home() / ".soap-workbench" / "history.json"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_sources(sources: List[str]) -> Tuple[str, ...]:
    cleaned = [source.strip().lower() for source in sources if source and source.strip()]
    return tuple(sorted(cleaned))


def _distinct_sources(sources: List[str]) -> List[str]:
    """Trim, drop blanks, and de-duplicate case-insensitively (first wins)."""
    seen = set()
    result = []
    for source in sources:
        if not source or not source.strip():
            continue
        trimmed = source.strip()
        if trimmed.lower() in seen:
            continue
        seen.add(trimmed.lower())
        result.append(trimmed)
    return result


@dataclass(eq=False)
class SearchHistoryEntry:
    """One remembered describe request.

    Attributes:
        id: Stable identifier (hex UUID4).
        primary_source: Main descriptor URL, if any.
        additional_sources: Extra descriptor URLs.
        follow_imports: Import-following flag of the request.
        execution_endpoint: Endpoint last used to invoke operations, if any.
        saved_at: UTC time of the last save.
    """

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    primary_source: Optional[str] = None
    additional_sources: List[str] = field(default_factory=list)
    follow_imports: bool = True
    execution_endpoint: Optional[str] = None
    saved_at: datetime = field(default_factory=_utc_now)

    @property
    def display_name(self) -> str:
        if self.primary_source and self.primary_source.strip():
            return self.primary_source
        return "(Unnamed search)"

    def identity(self) -> Tuple[str, bool, Tuple[str, ...]]:
        return (
            (self.primary_source or "").strip().lower(),
            self.follow_imports,
            _normalize_sources(self.additional_sources),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SearchHistoryEntry):
            return NotImplemented
        return self.identity() == other.identity()

    def __hash__(self) -> int:
        return hash(self.identity())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "primary_source": self.primary_source,
            "additional_sources": list(self.additional_sources),
            "follow_imports": self.follow_imports,
            "execution_endpoint": self.execution_endpoint,
            "saved_at": self.saved_at.isoformat(),
            "display_name": self.display_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SearchHistoryEntry":
        saved_at = data.get("saved_at")
        return cls(
            id=data.get("id") or uuid.uuid4().hex,
            primary_source=data.get("primary_source"),
            additional_sources=list(data.get("additional_sources") or []),
            follow_imports=bool(data.get("follow_imports", True)),
            execution_endpoint=data.get("execution_endpoint"),
            saved_at=datetime.fromisoformat(saved_at) if saved_at else _utc_now(),
        )


class SearchHistoryStore:
    """JSON-file backed history, safe for concurrent use within one event loop.

    Args:
        path: History file location. Parent directories are created on the
            first save.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    @classmethod
    def from_env(cls) -> "SearchHistoryStore":
        """Store at ``SOAP_WORKBENCH_HISTORY_PATH`` (or the per-user default)."""
        configured = os.getenv(HISTORY_ENV_VAR)
        return cls(Path(configured) if configured else DEFAULT_HISTORY_PATH)

    def _read(self) -> List[SearchHistoryEntry]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return [SearchHistoryEntry.from_dict(item) for item in data or []]

    def _write(self, entries: List[SearchHistoryEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [entry.to_dict() for entry in entries]
        for item in payload:
            item.pop("display_name", None)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)

    async def get_all(self) -> List[SearchHistoryEntry]:
        """Return all entries, most recently saved first."""
        async with self._lock:
            entries = await asyncio.to_thread(self._read)
        return sorted(entries, key=lambda entry: entry.saved_at, reverse=True)

    async def get(self, entry_id: str) -> Optional[SearchHistoryEntry]:
        for entry in await self.get_all():
            if entry.id == entry_id:
                return entry
        return None

    async def save(self, entry: SearchHistoryEntry) -> SearchHistoryEntry:
        """Insert ``entry`` or refresh the equal entry already stored.

        Returns:
            The stored (normalized) entry; it keeps the existing ``id`` when an
            equal search was saved before.
        """
        async with self._lock:
            entries = await asyncio.to_thread(self._read)
            normalized = SearchHistoryEntry(
                id=entry.id,
                primary_source=entry.primary_source.strip() if entry.primary_source else None,
                additional_sources=_distinct_sources(entry.additional_sources),
                follow_imports=entry.follow_imports,
                execution_endpoint=(
                    entry.execution_endpoint.strip() if entry.execution_endpoint else None
                ),
                saved_at=_utc_now(),
            )

            existing = next((e for e in entries if e == normalized), None)
            if existing is not None:
                entries.remove(existing)
                normalized.id = existing.id
                logger.debug(f"Refreshing history entry {existing.id}")

            entries.append(normalized)
            await asyncio.to_thread(self._write, entries)
        return normalized
