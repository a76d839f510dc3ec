"""Coalescing, cached, timeout-bounded subtitle search.

A Bazarr provider search can take anywhere from a second to tens of minutes,
because Bazarr queries every configured provider live. SearchCoordinator
sits in front of it:

- a cached result (search TTL, 1h by default) is returned immediately;
- concurrent callers for the same SearchKey share one upstream call
  (the in-flight table holds one Future per key);
- the caller that started the call may stop waiting after timeout_seconds
  and get a "search in progress" placeholder, while the call keeps running
  on the coordinator's executor and caches its result when it finishes;
- failures are never cached, and the in-flight entry is always removed so
  the next caller starts a fresh search.

Results are stored unfiltered; language filtering happens per call so one
cached search serves every requested language.

Lock order: self._lock may be held while the cache takes its own lock,
never the other way round.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from functools import partial
from typing import Callable, Optional, Sequence

import metrics
from cache import CacheBackend
from language import DEFAULT_LANGUAGE, filter_by_language
from models import SearchKey, SearchResult, SubtitleCandidate

logger = logging.getLogger(__name__)

SEARCH_CACHE_PREFIX = "search:"
SEARCH_RESULT_TTL = 3600  # seconds
DEFAULT_WORKERS = 8

UpstreamSearch = Callable[[SearchKey], Sequence[SubtitleCandidate]]


def search_cache_key(key: SearchKey) -> str:
    return f"{SEARCH_CACHE_PREFIX}{key}"


class SearchCoordinator:
    """Serves subtitle searches with at most one upstream call per key.

    Args:
        upstream: Callable performing the real search for a SearchKey,
                  e.g. BazarrClient.search. Raises on failure.
        cache: Shared result cache.
        search_ttl_seconds: Lifetime of cached search results.
        max_workers: Size of the executor running upstream calls.
        executor: Optional executor to use instead of creating one.
    """

    def __init__(
        self,
        upstream: UpstreamSearch,
        cache: CacheBackend,
        search_ttl_seconds: float = SEARCH_RESULT_TTL,
        max_workers: int = DEFAULT_WORKERS,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self._upstream = upstream
        self._cache = cache
        self.search_ttl_seconds = search_ttl_seconds
        # Process-scoped: upstream calls outlive the request that started them.
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="bazarr-search",
        )
        self._in_flight: dict[SearchKey, Future] = {}
        self._lock = threading.Lock()

    # ─── Public API ─────────────────────────────────────────────────────────

    def search(
        self, key: SearchKey, language: Optional[str], timeout_seconds: float = 0,
    ) -> SearchResult:
        """Return subtitles for key, filtered to language.

        Args:
            key: What to search for.
            language: Requested language code (2/3-letter or regional).
            timeout_seconds: How long the caller that starts the upstream
                call is willing to wait. 0 waits until the call finishes.
                Callers that join a running call always wait for it.

        Raises:
            Whatever the upstream raised, if this caller was waiting on it.
        """
        language = language or DEFAULT_LANGUAGE

        cached = self._get_cached(key)
        if cached is None:
            future, is_new, cached = self._join_or_start(key)
        if cached is not None:
            logger.info(
                "Returning cached subtitle search results for %s (%d subtitles)", key, len(cached),
            )
            metrics.record_search_outcome("cache_hit")
            return self._filtered(cached, language, from_cache=True)

        if not is_new:
            logger.info("Reusing in-flight search for %s", key)
            metrics.record_search_outcome("joined")
            return self._filtered(future.result(), language)

        metrics.record_search_outcome("started")

        if timeout_seconds > 0:
            done, _ = wait_futures([future], timeout=timeout_seconds)
            if not done:
                logger.info(
                    "Search timeout (%ss) reached for %s. Search continues in background.",
                    timeout_seconds, key,
                )
                metrics.record_search_outcome("handed_off")
                future.add_done_callback(partial(self._finish_in_background, key))
                return SearchResult.in_progress()

        try:
            candidates = future.result()
        except Exception as e:
            logger.error("Error searching subtitles for %s: %s", key, e)
            self._forget(key, future)
            raise

        self._commit(key, future, candidates)
        return self._filtered(candidates, language)

    def is_in_flight(self, key: SearchKey) -> bool:
        with self._lock:
            return key in self._in_flight

    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def get_status(self) -> dict:
        """JSON-serialisable snapshot for the health endpoint."""
        with self._lock:
            keys = sorted(str(k) for k in self._in_flight)
        return {
            "in_flight": len(keys),
            "in_flight_keys": keys,
            "search_ttl_seconds": self.search_ttl_seconds,
        }

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting new searches. Running searches are not cancelled."""
        self._executor.shutdown(wait=wait)

    # ─── Internals ──────────────────────────────────────────────────────────

    def _get_cached(self, key: SearchKey) -> Optional[tuple[SubtitleCandidate, ...]]:
        try:
            return self._cache.get(search_cache_key(key))
        except Exception as e:
            logger.warning("Search cache lookup failed for %s, treating as miss: %s", key, e)
            return None

    def _join_or_start(
        self, key: SearchKey,
    ) -> tuple[Optional[Future], bool, Optional[tuple[SubtitleCandidate, ...]]]:
        """Atomically join the running search for key or start one.

        Returns:
            (future, is_new, cached). cached is set instead of a future when
            a search finished and committed between the caller's first cache
            lookup and taking the lock.
        """
        with self._lock:
            future = self._in_flight.get(key)
            if future is not None:
                return future, False, None

            # Commits happen before removal, so no entry + no cache = cold.
            cached = self._get_cached(key)
            if cached is not None:
                return None, False, cached

            future = self._executor.submit(self._run_upstream, key)
            self._in_flight[key] = future
            metrics.SEARCHES_IN_FLIGHT.set(len(self._in_flight))
            return future, True, None

    def _run_upstream(self, key: SearchKey) -> tuple[SubtitleCandidate, ...]:
        start = time.monotonic()
        try:
            results = tuple(self._upstream(key))
        except Exception:
            metrics.record_upstream_search(key.kind.value, "failure", time.monotonic() - start)
            raise
        metrics.record_upstream_search(key.kind.value, "success", time.monotonic() - start)
        return results

    def _commit(self, key: SearchKey, future: Future, candidates) -> None:
        """Cache a successful result, then drop the in-flight entry."""
        try:
            self._cache.set(search_cache_key(key), tuple(candidates), self.search_ttl_seconds)
        except Exception as e:
            logger.warning("Could not cache search results for %s: %s", key, e)
        finally:
            self._forget(key, future)

    def _forget(self, key: SearchKey, future: Future) -> None:
        with self._lock:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]
            metrics.SEARCHES_IN_FLIGHT.set(len(self._in_flight))

    def _finish_in_background(self, key: SearchKey, future: Future) -> None:
        """Done-callback for searches whose starter stopped waiting."""
        try:
            candidates = future.result()
        except Exception as e:
            logger.error("Background search failed for %s: %s", key, e)
            self._forget(key, future)
            return

        self._commit(key, future, candidates)
        logger.info(
            "Background search completed for %s. Found %d subtitles. Results cached for %d minutes.",
            key, len(candidates), self.search_ttl_seconds // 60,
        )

    @staticmethod
    def _filtered(candidates, language: str, from_cache: bool = False) -> SearchResult:
        return SearchResult(tuple(filter_by_language(candidates, language)), from_cache=from_cache)
