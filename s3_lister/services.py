from __future__ import annotations
"""boto3-backed listing and bucket discovery for S3-compatible stores."""
import logging
from typing import Callable

import boto3
from botocore.client import Config

from .models import BucketInfo, ListingPage

LOGGER = logging.getLogger(__name__)

DEFAULT_DELIMITER = "/"


class S3ListingService:
    """Wraps the two store calls the walker depends on.

    Both calls let botocore errors propagate; callers decide how much of the
    traversal a failure should cost.
    """

    def __init__(self, client_factory: Callable[..., object] | None = None):
        self._client_factory = client_factory or boto3.client

    def create_client(
        self,
        *,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region_name: str | None = None,
    ):
        config = Config(signature_version="s3v4")
        kwargs: dict[str, object] = {"config": config}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        if access_key and secret_key:
            kwargs["aws_access_key_id"] = access_key
            kwargs["aws_secret_access_key"] = secret_key
        elif access_key or secret_key:
            LOGGER.warning(
                "Only the %s is set, falling back to the default credential chain",
                "access key" if access_key else "secret key",
            )
        if region_name:
            kwargs["region_name"] = region_name
        return self._client_factory("s3", **kwargs)

    def client_for_bucket(
        self,
        bucket: BucketInfo,
        *,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        default_region: str | None = None,
    ):
        """Return a client able to list ``bucket``.

        The bucket's location hint, or else ``default_region``, signs the
        requests, with or without an explicit endpoint.
        """

        region = (bucket.location or default_region or "").strip() or None
        if not endpoint_url and not region:
            LOGGER.warning(
                "Bucket %s has no location hint, using the default endpoint", bucket.name
            )
        return self.create_client(
            endpoint_url=endpoint_url,
            access_key=access_key,
            secret_key=secret_key,
            region_name=region,
        )

    def list_buckets(self, client) -> list[BucketInfo]:
        """Return the buckets visible to the client's credentials."""

        response = client.list_buckets()
        return [
            BucketInfo(name=bucket["Name"], location=bucket.get("BucketRegion") or None)
            for bucket in response.get("Buckets", [])
        ]

    def list_page(
        self,
        client,
        *,
        bucket_name: str,
        prefix: str = "",
        delimiter: str = DEFAULT_DELIMITER,
        marker: str | None = None,
    ) -> ListingPage:
        """Fetch one page of the delimiter listing directly under ``prefix``."""

        list_params: dict[str, str] = {"Bucket": bucket_name}
        if delimiter:
            list_params["Delimiter"] = delimiter
        if prefix:
            list_params["Prefix"] = prefix
        if marker:
            list_params["ContinuationToken"] = marker

        response = client.list_objects_v2(**list_params)
        keys = [obj["Key"] for obj in response.get("Contents", []) if obj["Key"] != prefix]
        prefixes = [common["Prefix"] for common in response.get("CommonPrefixes", [])]
        return ListingPage(
            prefixes=prefixes,
            keys=keys,
            next_marker=response.get("NextContinuationToken"),
            truncated=bool(response.get("IsTruncated", False)),
        )


def select_buckets(buckets: list[BucketInfo], bucket_name: str | None) -> list[BucketInfo]:
    """Narrow discovered buckets to ``bucket_name``, falling back to a bare entry.

    Discovery may come back empty when the credentials lack the permission to
    list buckets while still being allowed to list objects of a known one.
    """

    if not bucket_name:
        return list(buckets)
    for bucket in buckets:
        if bucket.name == bucket_name:
            return [bucket]
    if buckets:
        LOGGER.error(
            "Bucket %s not found among %s",
            bucket_name,
            ", ".join(bucket.name for bucket in buckets),
        )
    LOGGER.warning("Falling back to bucket %s without a location hint", bucket_name)
    return [BucketInfo(name=bucket_name)]
