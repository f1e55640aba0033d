from __future__ import annotations
"""Coordinates bucket discovery and one walk per selected bucket."""
import logging
from typing import Callable

from botocore.exceptions import BotoCoreError, ClientError

from .cache import BUCKETS_KEY_PREFIX, TraversalCache, credentials_hash
from .models import BucketInfo, BucketOutcome, RunSummary
from .services import S3ListingService, select_buckets
from .walker import BucketWalker

LOGGER = logging.getLogger(__name__)

BucketEmitFn = Callable[[str, str], None]


class NoBucketsError(RuntimeError):
    """Raised when discovery found nothing and no bucket was named."""


class ListingRunner:
    """Runs the walker over every bucket the credentials can reach."""

    def __init__(
        self,
        walker: BucketWalker,
        *,
        service: S3ListingService | None = None,
        cache: TraversalCache | None = None,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str | None = None,
    ):
        self._walker = walker
        self._service = service or S3ListingService()
        self._cache = cache
        self._connection_params = {
            "endpoint_url": endpoint_url,
            "access_key": access_key,
            "secret_key": secret_key,
        }
        self._region = region or None

    @property
    def _buckets_cache_key(self) -> str:
        return BUCKETS_KEY_PREFIX + credentials_hash(
            self._connection_params["access_key"], self._connection_params["secret_key"]
        )

    def discover_buckets(self) -> list[BucketInfo]:
        """Return the buckets visible to the credentials, cached per credential pair."""

        if self._cache is not None:
            cached = self._cache.get_json(self._buckets_cache_key)
            if isinstance(cached, list):
                buckets = [
                    BucketInfo(name=entry["name"], location=entry.get("location"))
                    for entry in cached
                    if isinstance(entry, dict) and entry.get("name")
                ]
                if buckets:
                    LOGGER.debug("Using %d cached bucket(s)", len(buckets))
                    return buckets

        try:
            client = self._service.create_client(
                **self._connection_params, region_name=self._region
            )
            buckets = self._service.list_buckets(client)
        except (ClientError, BotoCoreError, ValueError) as exc:
            LOGGER.error("Failed to list buckets: %s", exc)
            return []

        if buckets and self._cache is not None:
            self._cache.set_json(
                self._buckets_cache_key,
                [{"name": bucket.name, "location": bucket.location} for bucket in buckets],
            )
        return buckets

    def run(
        self,
        *,
        emit: BucketEmitFn,
        bucket_name: str | None = None,
        prefix: str = "",
    ) -> RunSummary:
        """Walk each selected bucket in turn, passing ``(bucket, key)`` to ``emit``.

        Raises:
            NoBucketsError: when discovery is empty and no bucket was named.
        """

        LOGGER.info("Getting the bucket list...")
        discovered = self.discover_buckets()
        LOGGER.info("Found %d bucket(s)", len(discovered))
        buckets = select_buckets(discovered, bucket_name)
        if not buckets:
            raise NoBucketsError(
                "No bucket to list: name one explicitly or use credentials that can list buckets"
            )

        summary = RunSummary()
        for index, bucket in enumerate(buckets, start=1):
            LOGGER.info("Processing bucket %s (%d/%d)", bucket.name, index, len(buckets))
            summary.outcomes[bucket.name] = self._run_bucket(bucket, prefix, emit)

        failed = summary.failed_buckets
        if failed:
            LOGGER.warning("Some buckets could not be listed: %s", ", ".join(failed))
        LOGGER.info("All buckets processed, %d file(s) emitted", summary.files_emitted)
        return summary

    def _run_bucket(self, bucket: BucketInfo, prefix: str, emit: BucketEmitFn) -> BucketOutcome:
        try:
            client = self._service.client_for_bucket(
                bucket, default_region=self._region, **self._connection_params
            )
        except (ClientError, BotoCoreError, ValueError) as exc:
            LOGGER.error("Failed to create a client for bucket %s: %s", bucket.name, exc)
            return BucketOutcome(bucket=bucket.name, error=str(exc))

        stats = self._walker.walk(client, bucket.name, prefix, lambda key: emit(bucket.name, key))
        outcome = BucketOutcome(bucket=bucket.name, stats=stats)
        if stats.prefixes_listed == 0 and stats.failed_prefixes:
            outcome.error = f"listing failed for {bucket.name!r}"
        LOGGER.info("Bucket %s completed", bucket.name)
        return outcome
