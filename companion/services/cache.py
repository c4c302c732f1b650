from __future__ import annotations

import hashlib
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from ..core.config import CacheSettings
from ..core.logging import get_logger
from ..core.metrics import increment_cache_event, set_cache_entries
from ..schemas.agents import AgentResponse

logger = get_logger(name=__name__)


def normalize_message(message: str) -> str:
    return " ".join(str(message or "").lower().split())


def cache_key(message: str, agent: str, language: str) -> str:
    raw = f"{agent}:{language}:{normalize_message(message)}"
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class _CacheEntry:
    response: AgentResponse
    stored_at: float


class ResponseCache:
    """TTL-bounded store of agent responses keyed by (agent, language, message).

    Only enabled agents are cached, and never an answer that called tools,
    since tool results read the caller's own records.
    All methods are synchronous so every read-modify-write completes without
    yielding to the event loop. Entries are deep-copied on the way in and out.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 3600.0,
        max_size: int = 100,
        enabled_agents: Iterable[str] = ("general", "learning"),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_size = max(1, max_size)
        self.enabled_agents = frozenset(enabled_agents)
        self._clock = clock
        self._entries: OrderedDict[str, _CacheEntry] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> "ResponseCache":
        return cls(
            ttl_seconds=settings.ttl_seconds,
            max_size=settings.max_size,
            enabled_agents=settings.enabled_agents,
        )

    def is_cacheable(self, agent: str) -> bool:
        return agent in self.enabled_agents

    def get(self, message: str, agent: str, language: str) -> AgentResponse | None:
        if not self.is_cacheable(agent):
            return None
        key = cache_key(message, agent, language)
        entry = self._entries.get(key)
        if entry is None:
            self._miss()
            return None
        if self._clock() - entry.stored_at > self.ttl_seconds:
            del self._entries[key]
            set_cache_entries(count=len(self._entries))
            self._miss()
            return None
        self._hits += 1
        increment_cache_event(event="hit")
        return entry.response.model_copy(deep=True)

    def set(self, message: str, agent: str, language: str, response: AgentResponse) -> bool:
        if not self.is_cacheable(agent) or response.error:
            return False
        if response.metadata.get("used_tools"):
            # Tool results read the caller's own records
            logger.debug("response_cache_skipped", agent=agent, reason="used_tools")
            return False
        key = cache_key(message, agent, language)
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_oldest()
        self._entries[key] = _CacheEntry(response=response.model_copy(deep=True), stored_at=self._clock())
        # A rewrite counts as the newest entry
        self._entries.move_to_end(key)
        increment_cache_event(event="store")
        set_cache_entries(count=len(self._entries))
        return True

    def clear(self) -> None:
        self._entries.clear()
        set_cache_entries(count=0)
        logger.info("response_cache_cleared")

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "ttl_seconds": self.ttl_seconds,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
            "enabled_agents": sorted(self.enabled_agents),
        }

    def __len__(self) -> int:
        return len(self._entries)

    def _miss(self) -> None:
        self._misses += 1
        increment_cache_event(event="miss")

    def _evict_oldest(self) -> None:
        key, _ = self._entries.popitem(last=False)
        self._evictions += 1
        increment_cache_event(event="eviction")
        logger.debug("response_cache_evicted", key=key)
