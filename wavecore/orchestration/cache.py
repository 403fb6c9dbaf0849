"""
Caching for wave analyses and historical series.

Two layers:
- CacheStore: a dumb async key/record store. InMemoryStore keeps records in
  a dict; FileStore persists them as JSON files and transparently splits
  large payloads across chunk files.
- TTLCache: adds lazy staleness on top of a store. A record is stale when
  ``now - stored_at > ttl``; stale records read as absent but stay in the
  store until overwritten, invalidated or pruned.

AnalysisCache and SeriesCache address TTLCache by (symbol, timeframe).
Callers never see stores, records or chunks.
"""
from __future__ import annotations

import asyncio
import copy
import glob
import json
import logging
import os
import re
import tempfile
import threading
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..shared.defaults import (
    ANALYSIS_TTL_SECONDS, CACHE_DIR, CHUNK_SIZE, SERIES_TTL_SECONDS,
)
from ..shared.errors import CacheStoreError
from ..shared.types import PricePoint, WaveAnalysisResult


logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Record = Dict[str, Any]  # {"stored_at": float, "payload": dict}


# ----------------------------------------------------------------------
# Stores
# ----------------------------------------------------------------------

class CacheStore(ABC):
    """Async key/record store. Implementations raise CacheStoreError on failure."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Record]:
        """Return the record stored under key, or None."""

    @abstractmethod
    async def put(self, key: str, record: Record) -> None:
        """Store record under key, replacing any previous record."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key; True if something was deleted."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        """All stored keys starting with prefix."""

    async def clear(self, prefix: str = "") -> int:
        """Delete every key starting with prefix; returns the number deleted."""
        deleted = 0
        for key in await self.keys(prefix):
            if await self.delete(key):
                deleted += 1
        return deleted


class InMemoryStore(CacheStore):
    """Process-local store. Records are copied in and out."""

    def __init__(self):
        self._records: Dict[str, Record] = {}

    async def get(self, key: str) -> Optional[Record]:
        record = self._records.get(key)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, key: str, record: Record) -> None:
        self._records[key] = copy.deepcopy(record)

    async def delete(self, key: str) -> bool:
        return self._records.pop(key, None) is not None

    async def keys(self, prefix: str = "") -> List[str]:
        return [k for k in self._records if k.startswith(prefix)]

    def __len__(self) -> int:
        return len(self._records)


class FileStore(CacheStore):
    """
    JSON-file store.

    Each key has a manifest ``<name>.json``. Small records are stored inline
    in the manifest; records whose JSON text exceeds ``chunk_size`` characters
    are written to ``<name>.<generation>.<i>.chunk`` files and the manifest only
    lists the generation and chunk count. Every write uses a fresh generation,
    so concurrent writers never touch each other's chunks and the manifest
    swap decides which write wins. A manifest whose chunks are missing reads
    as absent.
    """

    def __init__(self, cache_dir: Optional[Path] = None, chunk_size: int = CHUNK_SIZE):
        """
        Initialize file store.

        Args:
            cache_dir: Directory for cache files (default: ~/.cache/wavecore)
            chunk_size: Maximum characters per file before splitting
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.cache_dir = Path(cache_dir or CACHE_DIR).expanduser()
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    async def get(self, key: str) -> Optional[Record]:
        return await asyncio.to_thread(self._read, key)

    async def put(self, key: str, record: Record) -> None:
        await asyncio.to_thread(self._write, key, record)

    async def delete(self, key: str) -> bool:
        return await asyncio.to_thread(self._remove, key)

    async def keys(self, prefix: str = "") -> List[str]:
        return await asyncio.to_thread(self._list_keys, prefix)

    # Blocking helpers (run in a worker thread)

    @staticmethod
    def _file_name(key: str) -> str:
        return re.sub(r"[^A-Za-z0-9_.-]", "_", key)

    def _manifest_path(self, key: str) -> Path:
        return self.cache_dir / f"{self._file_name(key)}.json"

    def _chunk_path(self, key: str, generation: str, i: int) -> Path:
        return self.cache_dir / f"{self._file_name(key)}.{generation}.{i}.chunk"

    def _key_lock(self, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def _load_manifest(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            with open(self._manifest_path(key), "r") as f:
                manifest = json.load(f)
        except FileNotFoundError:
            return None
        if not isinstance(manifest, dict) or manifest.get("key") != key:
            return None
        return manifest

    def _read(self, key: str) -> Optional[Record]:
        try:
            previous = None
            for _ in range(3):
                manifest = self._load_manifest(key)
                if manifest is None:
                    return None
                if "record" in manifest:
                    return manifest["record"]

                generation = manifest["generation"]
                parts = []
                for i in range(int(manifest["chunks"])):
                    try:
                        parts.append(self._chunk_path(key, generation, i).read_text())
                    except FileNotFoundError:
                        break
                else:
                    return json.loads("".join(parts))

                # Chunks gone: either a newer write replaced them (read again) or they are lost
                if generation == previous:
                    logger.warning(f"Cache entry {key} is missing chunk {len(parts)}, treating as absent")
                    return None
                previous = generation
            logger.warning(f"Cache entry {key} kept changing while being read, treating as absent")
            return None
        except (OSError, ValueError, KeyError) as e:
            raise CacheStoreError(f"Failed to read cache entry {key}: {e}") from e

    def _write(self, key: str, record: Record) -> None:
        try:
            text = json.dumps(record)
        except (TypeError, ValueError) as e:
            raise CacheStoreError(f"Cache entry {key} is not serializable: {e}") from e

        generation = uuid.uuid4().hex
        if len(text) <= self.chunk_size:
            manifest = {"key": key, "record": record}
        else:
            chunks = [text[i:i + self.chunk_size] for i in range(0, len(text), self.chunk_size)]
            manifest = {"key": key, "generation": generation, "chunks": len(chunks)}

        with self._key_lock(key):
            try:
                if "chunks" in manifest:
                    for i, chunk in enumerate(chunks):
                        self._chunk_path(key, generation, i).write_text(chunk)

                # Manifest last, atomically, so readers never see a half-written entry
                fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".manifest-", suffix=".tmp")
                try:
                    with os.fdopen(fd, "w") as f:
                        json.dump(manifest, f)
                    os.replace(tmp_name, self._manifest_path(key))
                finally:
                    if os.path.exists(tmp_name):
                        os.unlink(tmp_name)

                self._remove_chunks(key, keep=manifest.get("generation"))
            except OSError as e:
                raise CacheStoreError(f"Failed to write cache entry {key}: {e}") from e

    def _chunk_files(self, key: str) -> Dict[Path, str]:
        """Chunk files of key mapped to their generation."""
        name = self._file_name(key)
        files = {}
        for path in self.cache_dir.glob(f"{glob.escape(name)}.*.chunk"):
            match = re.fullmatch(r"([0-9a-f]{32})\.\d+\.chunk", path.name[len(name) + 1:])
            if match:
                files[path] = match.group(1)
        return files

    def _remove_chunks(self, key: str, keep: Optional[str] = None) -> None:
        for path, generation in self._chunk_files(key).items():
            if generation != keep:
                path.unlink(missing_ok=True)

    def _remove(self, key: str) -> bool:
        manifest_path = self._manifest_path(key)
        with self._key_lock(key):
            if not manifest_path.exists():
                return False
            try:
                manifest_path.unlink()
                self._remove_chunks(key)
                return True
            except OSError as e:
                raise CacheStoreError(f"Failed to delete cache entry {key}: {e}") from e

    def _list_keys(self, prefix: str) -> List[str]:
        keys = []
        for path in sorted(self.cache_dir.glob("*.json")):
            try:
                with open(path, "r") as f:
                    key = json.load(f).get("key")
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable cache file {path.name}: {e}")
                continue
            if isinstance(key, str) and key.startswith(prefix):
                keys.append(key)
        return keys

    def __repr__(self) -> str:
        return f"FileStore(dir={self.cache_dir}, chunk_size={self.chunk_size})"


def create_store(backend: str, cache_dir: Optional[str] = None, chunk_size: int = CHUNK_SIZE) -> CacheStore:
    """Build a store from config values ("memory" or "file")."""
    if backend == "memory":
        return InMemoryStore()
    if backend == "file":
        return FileStore(Path(cache_dir) if cache_dir else None, chunk_size=chunk_size)
    raise ValueError(f"Unknown cache backend: '{backend}'")


# ----------------------------------------------------------------------
# TTL layer
# ----------------------------------------------------------------------

class TTLCache:
    """
    Lazy-TTL cache over a CacheStore.

    Store failures never escape: reads degrade to a miss, writes and deletes
    report False.
    """

    def __init__(self, store: CacheStore, ttl_seconds: float, clock: Clock = time.time, prefix: str = ""):
        """
        Initialize TTL cache.

        Args:
            store: Backend holding the records
            ttl_seconds: Maximum age before a record reads as absent
            clock: Returns "now" in epoch seconds
            prefix: Key prefix owned by this cache (used by clear/prune)
        """
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {ttl_seconds}")
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.prefix = prefix

        # Track stats
        self.hits = 0
        self.misses = 0

    def is_stale(self, stored_at: float, now: Optional[float] = None) -> bool:
        now = self.clock() if now is None else now
        return now - stored_at > self.ttl_seconds

    async def get_payload(self, key: str, force_refresh: bool = False) -> Optional[Dict[str, Any]]:
        """
        Fresh payload stored under key, or None.

        force_refresh skips the lookup entirely and always reports absent.
        """
        if force_refresh:
            self.misses += 1
            return None

        try:
            record = await self.store.get(key)
        except CacheStoreError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            record = None

        if record is None or self.is_stale(float(record.get("stored_at", 0))):
            self.misses += 1
            return None

        self.hits += 1
        return record.get("payload")

    async def put_payload(self, key: str, payload: Dict[str, Any]) -> bool:
        """Store payload under key stamped with the current time; False if the store failed."""
        record = {"stored_at": self.clock(), "payload": payload}
        try:
            await self.store.put(key, record)
            return True
        except CacheStoreError as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            return await self.store.delete(key)
        except CacheStoreError as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False

    async def clear(self) -> int:
        """Delete every entry owned by this cache."""
        try:
            return await self.store.clear(self.prefix)
        except CacheStoreError as e:
            logger.warning(f"Cache clear failed for prefix '{self.prefix}': {e}")
            return 0

    async def prune(self) -> int:
        """Delete stale entries owned by this cache; returns how many were removed."""
        now = self.clock()
        removed = 0
        try:
            for key in await self.store.keys(self.prefix):
                record = await self.store.get(key)
                if record is not None and self.is_stale(float(record.get("stored_at", 0)), now):
                    if await self.store.delete(key):
                        removed += 1
        except CacheStoreError as e:
            logger.warning(f"Cache prune stopped early: {e}")
        if removed:
            logger.info(f"Pruned {removed} stale cache entries")
        return removed

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total = self.hits + self.misses
        hit_rate = (self.hits / total * 100) if total > 0 else 0

        return {
            "hits": self.hits,
            "misses": self.misses,
            "total_requests": total,
            "hit_rate_pct": hit_rate,
            "ttl_seconds": self.ttl_seconds,
        }

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"{self.__class__.__name__}(store={self.store.__class__.__name__}, "
            f"ttl={self.ttl_seconds}s, hits={stats['hits']}, misses={stats['misses']}, "
            f"hit_rate={stats['hit_rate_pct']:.1f}%)"
        )


class AnalysisCache(TTLCache):
    """One WaveAnalysisResult per (symbol, timeframe); put always overwrites."""

    PREFIX = "wave_analysis_"

    def __init__(self, store: Optional[CacheStore] = None, ttl_seconds: float = ANALYSIS_TTL_SECONDS,
                 clock: Clock = time.time):
        super().__init__(store or InMemoryStore(), ttl_seconds, clock=clock, prefix=self.PREFIX)

    @classmethod
    def key(cls, symbol: str, timeframe: str) -> str:
        return f"{cls.PREFIX}{symbol.upper()}_{timeframe}"

    async def get(self, symbol: str, timeframe: str, force_refresh: bool = False) -> Optional[WaveAnalysisResult]:
        key = self.key(symbol, timeframe)
        payload = await self.get_payload(key, force_refresh=force_refresh)
        if payload is None:
            return None
        try:
            return WaveAnalysisResult.from_dict(payload)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            self.hits -= 1
            self.misses += 1
            return None

    async def put(self, symbol: str, timeframe: str, result: WaveAnalysisResult) -> bool:
        return await self.put_payload(self.key(symbol, timeframe), result.to_dict())

    async def invalidate(self, symbol: str, timeframe: str) -> bool:
        return await self.delete(self.key(symbol, timeframe))

    async def invalidate_all(self) -> int:
        return await self.clear()


class SeriesCache(TTLCache):
    """Historical OHLCV series per (symbol, timeframe)."""

    PREFIX = "series_"

    def __init__(self, store: Optional[CacheStore] = None, ttl_seconds: float = SERIES_TTL_SECONDS,
                 clock: Clock = time.time):
        super().__init__(store or InMemoryStore(), ttl_seconds, clock=clock, prefix=self.PREFIX)

    @classmethod
    def key(cls, symbol: str, timeframe: str) -> str:
        return f"{cls.PREFIX}{symbol.upper()}_{timeframe}"

    async def get(self, symbol: str, timeframe: str, force_refresh: bool = False) -> Optional[List[PricePoint]]:
        key = self.key(symbol, timeframe)
        payload = await self.get_payload(key, force_refresh=force_refresh)
        if payload is None:
            return None
        try:
            return [PricePoint(int(t), o, h, l, c, int(v)) for t, o, h, l, c, v in payload["bars"]]
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            self.hits -= 1
            self.misses += 1
            return None

    async def put(self, symbol: str, timeframe: str, series: Sequence[PricePoint]) -> bool:
        bars = [[p.timestamp, p.open, p.high, p.low, p.close, p.volume] for p in series]
        return await self.put_payload(self.key(symbol, timeframe), {"bars": bars})

    async def invalidate(self, symbol: str, timeframe: str) -> bool:
        return await self.delete(self.key(symbol, timeframe))
