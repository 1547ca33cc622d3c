"""Runtime cache of GraphQL query IDs, refreshed from the web client bundles.

Snapshot is stored as JSON (default ~/.config/tweetbird/query-ids-cache.json,
override with TWEETBIRD_QUERY_IDS_CACHE):
    {
        "fetchedAt": "2025-01-15T14:30:00+00:00",
        "ttlMs": 86400000,
        "ids": {"CreateTweet": "TAJw1rBsjAtdNgTdlo2oeg", ...},
        "discovery": {"pages": [...], "bundles": [...]}
    }

A missing or corrupt file reads as "no snapshot". Stale snapshots stay
usable; only a successful refresh that resolved at least one requested
operation overwrites the file.
"""

import asyncio
import json
import logging
import os
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx

from .constants import DEFAULT_TIMEOUT, QUERY_ID_PATTERN, USER_AGENT
from .discovery import DiscoveryError, discover_query_ids

logger = logging.getLogger(__name__)

CACHE_ENV_VAR = "TWEETBIRD_QUERY_IDS_CACHE"
DEFAULT_CACHE_PATH = Path.home() / ".config" / "tweetbird" / "query-ids-cache.json"
DEFAULT_TTL = timedelta(hours=24)

_QUERY_ID_RE = re.compile(QUERY_ID_PATTERN)


def default_cache_path() -> Path:
    override = os.environ.get(CACHE_ENV_VAR, "").strip()
    return Path(override) if override else DEFAULT_CACHE_PATH


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class QueryIdSnapshot:
    fetched_at: datetime
    ttl: timedelta = DEFAULT_TTL
    ids: dict[str, str] = field(default_factory=dict)
    discovery_pages: list[str] = field(default_factory=list)
    discovery_bundles: list[str] = field(default_factory=list)

    def to_json(self) -> dict:
        return {
            "fetchedAt": self.fetched_at.isoformat(),
            "ttlMs": int(self.ttl.total_seconds() * 1000),
            "ids": dict(self.ids),
            "discovery": {
                "pages": list(self.discovery_pages),
                "bundles": list(self.discovery_bundles),
            },
        }

    @classmethod
    def from_json(cls, data: object) -> "QueryIdSnapshot | None":
        """Parse a stored snapshot; anything malformed yields None."""
        if not isinstance(data, dict):
            return None
        fetched_at_raw = data.get("fetchedAt")
        raw_ids = data.get("ids")
        if not isinstance(fetched_at_raw, str) or not isinstance(raw_ids, dict):
            return None
        try:
            fetched_at = datetime.fromisoformat(fetched_at_raw)
        except ValueError:
            return None
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)

        ttl_ms = data.get("ttlMs")
        if isinstance(ttl_ms, (int, float)) and not isinstance(ttl_ms, bool) and ttl_ms > 0:
            ttl = timedelta(milliseconds=ttl_ms)
        else:
            ttl = DEFAULT_TTL

        ids = {
            name: value
            for name, value in raw_ids.items()
            if isinstance(name, str) and isinstance(value, str) and _QUERY_ID_RE.match(value)
        }
        discovery = data.get("discovery") if isinstance(data.get("discovery"), dict) else {}
        return cls(
            fetched_at=fetched_at,
            ttl=ttl,
            ids=ids,
            discovery_pages=[p for p in discovery.get("pages", []) if isinstance(p, str)],
            discovery_bundles=[b for b in discovery.get("bundles", []) if isinstance(b, str)],
        )


@dataclass(frozen=True)
class SnapshotInfo:
    snapshot: QueryIdSnapshot
    cache_path: Path
    age: timedelta
    is_fresh: bool


class QueryIdStore:
    """Owns the query ID snapshot: loads it lazily, refreshes it on demand.

    Overlapping refresh() calls share a single in-flight discovery task.
    """

    def __init__(
        self,
        cache_path: Path | None = None,
        ttl: timedelta = DEFAULT_TTL,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = _utcnow,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.cache_path = cache_path or default_cache_path()
        self.ttl = ttl
        self.timeout = timeout
        self._http_client = http_client
        self._clock = clock
        self._snapshot: QueryIdSnapshot | None = None
        self._loaded = False
        self._refresh_task: asyncio.Task | None = None

    def _read(self) -> QueryIdSnapshot | None:
        try:
            data = json.loads(self.cache_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable query ID cache %s: %s", self.cache_path, e)
            return None
        snapshot = QueryIdSnapshot.from_json(data)
        if snapshot is None:
            logger.warning("Ignoring malformed query ID cache %s", self.cache_path)
        return snapshot

    def _write(self, snapshot: QueryIdSnapshot) -> None:
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        self.cache_path.write_text(
            json.dumps(snapshot.to_json(), indent=2) + "\n", encoding="utf-8"
        )

    async def _load(self) -> QueryIdSnapshot | None:
        if not self._loaded:
            self._snapshot = await asyncio.to_thread(self._read)
            self._loaded = True
            if self._snapshot:
                logger.debug(
                    "Loaded %d query IDs from %s", len(self._snapshot.ids), self.cache_path
                )
        return self._snapshot

    def _info(self, snapshot: QueryIdSnapshot) -> SnapshotInfo:
        age = max(self._clock() - snapshot.fetched_at, timedelta(0))
        return SnapshotInfo(
            snapshot=snapshot,
            cache_path=self.cache_path,
            age=age,
            is_fresh=age < snapshot.ttl,
        )

    async def get_snapshot_info(self) -> SnapshotInfo | None:
        snapshot = await self._load()
        return self._info(snapshot) if snapshot else None

    async def get_query_id(self, name: str) -> str | None:
        snapshot = await self._load()
        if snapshot is None:
            return None
        return snapshot.ids.get(name)

    async def refresh(self, names: Iterable[str], force: bool = False) -> SnapshotInfo | None:
        """Re-run discovery unless the snapshot is fresh and not forced.

        Returns the new snapshot info, or the previous one unchanged when
        discovery resolves none of ``names``.
        """
        names = list(names)
        current = await self.get_snapshot_info()
        if not force and current and current.is_fresh:
            return current

        task = self._refresh_task
        if task is None:
            task = asyncio.create_task(self._run_refresh(names))
            task.add_done_callback(self._refresh_done)
            self._refresh_task = task
        # A cancelled caller must not cancel discovery for the others
        return await asyncio.shield(task)

    def _refresh_done(self, task: asyncio.Task) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _discover(self, targets: set[str]):
        if self._http_client is not None:
            return await discover_query_ids(self._http_client, targets)
        async with httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=self.timeout,
            follow_redirects=True,
        ) as client:
            return await discover_query_ids(client, targets)

    async def _run_refresh(self, names: list[str]) -> SnapshotInfo | None:
        logger.info("Refreshing query IDs for %d operations...", len(names))
        try:
            result = await self._discover(set(names))
        except DiscoveryError as e:
            logger.warning("Query ID refresh failed: %s", e)
            return await self.get_snapshot_info()

        ids = {name: result.ids[name] for name in names if name in result.ids}
        if not ids:
            logger.warning("Query ID refresh resolved no operations; keeping cache")
            return await self.get_snapshot_info()

        snapshot = QueryIdSnapshot(
            fetched_at=self._clock(),
            ttl=self.ttl,
            ids=ids,
            discovery_pages=result.pages,
            discovery_bundles=result.bundles,
        )
        await asyncio.to_thread(self._write, snapshot)
        self._snapshot = snapshot
        self._loaded = True
        logger.info("Refreshed %d/%d query IDs", len(ids), len(names))
        return self._info(snapshot)

    def clear_memory(self) -> None:
        """Forget the in-memory snapshot so the next access re-reads the file."""
        self._snapshot = None
        self._loaded = False
