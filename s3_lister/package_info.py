from __future__ import annotations
"""Distribution metadata used by ``--version``."""
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, metadata, version

DIST_NAME = "s3lister"


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        distribution_metadata = metadata(dist_name)
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(
            name=dist_name,
            version="unknown",
            summary="List every object of S3-compatible buckets.",
        )
    return PackageInfo(
        name=distribution_metadata.get("Name") or dist_name,
        version=package_version,
        summary=distribution_metadata.get("Summary") or "",
    )
