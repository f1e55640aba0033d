from __future__ import annotations
"""Concurrent prefix-by-prefix enumeration of a bucket.

Each prefix is one unit of work: it lists every page under the prefix,
emits the files it finds and spawns a new unit for every child prefix as
soon as the page that reveals it arrives. Units run on a thread pool, but
the number of units talking to the store at once is bounded by a
:class:`ConcurrencyLimiter` that is shared across the whole run.
"""
from concurrent.futures import Future, ThreadPoolExecutor
import logging
import posixpath
import threading
from typing import Callable

from botocore.exceptions import BotoCoreError, ClientError

from .cache import COMPLETE, TraversalCache, cache_key
from .exclusions import ExclusionSet
from .models import WalkStats
from .services import DEFAULT_DELIMITER, S3ListingService

LOGGER = logging.getLogger(__name__)

EmitFn = Callable[[str], None]


class ConcurrencyLimiter:
    """Counting permit shared by every traversal unit of a run."""

    def __init__(self, limit: int):
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            limit = 1
        self.limit = max(limit, 1)
        self._semaphore = threading.BoundedSemaphore(self.limit)
        self._lock = threading.Lock()
        self.active = 0
        self.peak = 0
        self.acquired = 0

    def __enter__(self) -> ConcurrencyLimiter:
        self._semaphore.acquire()
        with self._lock:
            self.active += 1
            self.acquired += 1
            self.peak = max(self.peak, self.active)
        return self

    def __exit__(self, *exc_info) -> None:
        with self._lock:
            self.active -= 1
        self._semaphore.release()


class _TaskGroup:
    """Tracks every unit spawned for one walk and waits for all of them."""

    def __init__(self, executor: ThreadPoolExecutor):
        self._executor = executor
        self._condition = threading.Condition()
        self._pending = 0

    def spawn(self, fn: Callable[..., None], *args) -> None:
        with self._condition:
            self._pending += 1
        future = self._executor.submit(fn, *args)
        future.add_done_callback(self._finished)

    def _finished(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            LOGGER.error("Traversal task failed", exc_info=exc)
        with self._condition:
            self._pending -= 1
            if self._pending == 0:
                self._condition.notify_all()

    def wait(self) -> None:
        with self._condition:
            while self._pending:
                self._condition.wait()


class _WalkContext:
    """Per-walk state shared by the units of one bucket."""

    def __init__(self, client, bucket_name: str, emit: EmitFn, group: _TaskGroup):
        self.client = client
        self.bucket_name = bucket_name
        self.emit = emit
        self.group = group
        self.stats = WalkStats()
        self._lock = threading.Lock()

    def count(self, field_name: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self.stats, field_name, getattr(self.stats, field_name) + amount)

    def record_failure(self, prefix: str) -> None:
        with self._lock:
            self.stats.failed_prefixes.append(prefix)


class BucketWalker:
    """Enumerates every non-excluded object key of a bucket."""

    def __init__(
        self,
        service: S3ListingService,
        exclusions: ExclusionSet | None = None,
        limiter: ConcurrencyLimiter | None = None,
        cache: TraversalCache | None = None,
        *,
        delimiter: str = DEFAULT_DELIMITER,
    ):
        self._service = service
        self._exclusions = exclusions or ExclusionSet()
        self._limiter = limiter or ConcurrencyLimiter(1)
        self._cache = cache
        self._delimiter = delimiter

    @property
    def limiter(self) -> ConcurrencyLimiter:
        return self._limiter

    def walk(self, client, bucket_name: str, prefix: str, emit: EmitFn) -> WalkStats:
        """Enumerate ``bucket_name`` below ``prefix``, passing each key to ``emit``.

        Returns once every unit spawned for this bucket has finished. Listing
        errors only cut off the subtree of the prefix that failed; they are
        reported in the log and in ``WalkStats.failed_prefixes``.
        """

        prefix = prefix or ""
        with ThreadPoolExecutor(
            max_workers=self._limiter.limit,
            thread_name_prefix=f"walk-{bucket_name}",
        ) as executor:
            group = _TaskGroup(executor)
            context = _WalkContext(client, bucket_name, emit, group)
            group.spawn(self._walk_prefix, context, prefix)
            group.wait()

        stats = context.stats
        if stats.partial:
            LOGGER.warning(
                "Bucket %s listed partially: %d prefix(es) failed, %d file(s) emitted",
                bucket_name,
                len(stats.failed_prefixes),
                stats.files_emitted,
            )
        else:
            LOGGER.info(
                "Bucket %s listed: %d prefix(es), %d file(s) emitted",
                bucket_name,
                stats.prefixes_listed,
                stats.files_emitted,
            )
        return stats

    def _walk_prefix(self, context: _WalkContext, prefix: str) -> None:
        key = cache_key(context.bucket_name, prefix)
        skip_files = False
        if self._cache is not None and self._cache.get(key) is not None:
            # Files under this prefix were emitted by an earlier pass. Child
            # prefixes are still listed because new ones may have appeared.
            LOGGER.debug("Cache hit for %s, skipping files", key)
            context.count("cache_hits")
            skip_files = True

        try:
            with self._limiter:
                completed = self._list_prefix(context, prefix, skip_files)
        except Exception:
            LOGGER.exception("Unexpected error while listing %s", key)
            completed = False

        if not completed:
            context.record_failure(prefix)
            return
        context.count("prefixes_listed")
        if self._cache is not None:
            self._cache.set(key, COMPLETE)

    def _list_prefix(self, context: _WalkContext, prefix: str, skip_files: bool) -> bool:
        marker: str | None = None
        while True:
            try:
                page = self._service.list_page(
                    context.client,
                    bucket_name=context.bucket_name,
                    prefix=prefix,
                    delimiter=self._delimiter,
                    marker=marker,
                )
            except (ClientError, BotoCoreError) as exc:
                LOGGER.error(
                    "Listing %s under %r failed: %s", context.bucket_name, prefix, exc
                )
                return False
            context.count("pages_fetched")

            for child in page.prefixes:
                if child == prefix:
                    continue
                if self._exclusions.should_exclude_dir(child, self._delimiter):
                    LOGGER.info("Skipping excluded directory: %s", child)
                    context.count("dirs_excluded")
                    continue
                context.group.spawn(self._walk_prefix, context, child)

            if not skip_files:
                self._emit_files(context, prefix, page.keys)

            if not page.truncated:
                return True
            if not page.next_marker:
                LOGGER.warning(
                    "Listing %s under %r was truncated without a continuation marker",
                    context.bucket_name,
                    prefix,
                )
                return True
            marker = page.next_marker

    def _emit_files(self, context: _WalkContext, prefix: str, keys: list[str]) -> None:
        for object_key in keys:
            if object_key == prefix:
                continue
            if self._exclusions.should_exclude_file(posixpath.basename(object_key)):
                context.count("files_excluded")
                continue
            context.emit(object_key)
            context.count("files_emitted")
            LOGGER.debug("Discovered file: %s", object_key)
