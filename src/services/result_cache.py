"""In-memory cache of completed pipeline results."""

import hashlib
from collections import OrderedDict

import logfire

from core.clock import Clock, SystemClock
from core.config import PipelineConfig
from models.research import PipelineResult, ResearchRequest


class ResultCache:
    """LRU cache with a time-to-live, keyed by research request.

    Only results produced entirely by the upstream service are worth reusing;
    the pipeline decides what to store.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        max_entries: int = 128,
        clock: Clock | None = None,
    ):
        """Initialize the cache.

        Args:
            ttl_seconds: Lifetime of an entry; 0 disables caching
            max_entries: Entries kept before the least recently used is evicted
            clock: Time source for expiry
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock or SystemClock()
        self._entries: OrderedDict[str, tuple[float, PipelineResult]] = OrderedDict()
        self.metrics = {"hits": 0, "misses": 0, "evictions": 0}

    @classmethod
    def from_config(cls, config: PipelineConfig, clock: Clock | None = None) -> "ResultCache":
        return cls(ttl_seconds=config.cache_ttl_seconds, clock=clock)

    @staticmethod
    def _generate_key(request: ResearchRequest) -> str:
        digest = hashlib.sha256(request.cache_key().encode()).hexdigest()
        return f"research:{digest[:16]}"

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0 and self.max_entries > 0

    def get(self, request: ResearchRequest) -> PipelineResult | None:
        if not self.enabled:
            return None
        key = self._generate_key(request)
        entry = self._entries.get(key)
        if entry is None:
            self.metrics["misses"] += 1
            return None

        expires_at, result = entry
        if expires_at <= self.clock.monotonic():
            del self._entries[key]
            self.metrics["misses"] += 1
            logfire.debug("Removed expired cache entry", key=key)
            return None

        self._entries.move_to_end(key)
        self.metrics["hits"] += 1
        return result

    def set(self, request: ResearchRequest, result: PipelineResult) -> None:
        if not self.enabled:
            return
        key = self._generate_key(request)
        self._entries[key] = (self.clock.monotonic() + self.ttl_seconds, result)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self.metrics["evictions"] += 1
            logfire.debug("Evicted cache entry", key=evicted)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
