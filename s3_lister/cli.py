from __future__ import annotations
"""Command line front end."""
import argparse
import logging
from typing import Sequence

from .cache import TraversalCache, default_cache_path
from .exclusions import ExclusionSet, parse_comma_list
from .logging_setup import configure_logging
from .package_info import load_package_info
from .profiles import ConnectionProfile, ProfileNotFoundError, ProfileStorage
from .runner import ListingRunner, NoBucketsError
from .services import S3ListingService
from .settings import AppSettings, SettingsStorage
from .sinks import KeyFileWriter, TreeBuilder
from .walker import BucketWalker, ConcurrencyLimiter

LOGGER = logging.getLogger(__name__)

DEFAULT_OUTPUT = "s3lister.txt"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3lister",
        description="List every object of S3-compatible buckets, resuming from a local cache.",
    )
    conn = parser.add_argument_group("connection")
    conn.add_argument("-i", "--access-key", default="", help="access key id")
    conn.add_argument("-k", "--secret-key", default="", help="secret access key")
    conn.add_argument("-e", "--endpoint", default="", help="endpoint URL of the store")
    conn.add_argument("--region", default="", help="region used when a bucket has no location")
    conn.add_argument("--profile", default="", help="saved connection profile to use")

    scope = parser.add_argument_group("scope")
    scope.add_argument("-b", "--bucket", default="", help="bucket name (default: every bucket)")
    scope.add_argument("-p", "--prefix", default="", help="only list keys below this prefix")
    scope.add_argument(
        "--exclude-ext",
        action="append",
        default=[],
        metavar="EXT",
        help="exclude file extensions, e.g. mp4,jpg ('none' matches files without one)",
    )
    scope.add_argument(
        "--default-exclude-ext",
        action="store_true",
        help="also exclude the default extension list",
    )
    scope.add_argument(
        "--exclude-key",
        action="append",
        default=[],
        metavar="KEY",
        help="skip directories with a path segment equal to KEY, e.g. temp,cache",
    )
    scope.add_argument(
        "--default-exclude-key",
        action="store_true",
        help="also skip the default directory keywords",
    )

    out = parser.add_argument_group("output")
    out.add_argument("-o", "--output", default=DEFAULT_OUTPUT, help="key list file, '-' for stdout")
    out.add_argument("--json", default="", help="also write a JSON tree to this file")
    out.add_argument("--tree", default="", help="also write a text tree to this file")

    run = parser.add_argument_group("run")
    run.add_argument("-w", "--workers", type=int, default=None, help="maximum concurrent listings")
    run.add_argument("--cache-file", default="", help="traversal cache file")
    run.add_argument("--no-cache", action="store_true", help="do not read or write the cache")
    run.add_argument("--clear-cache", action="store_true", help="discard the cache before listing")
    run.add_argument("--settings-file", default=None, help=argparse.SUPPRESS)
    run.add_argument("--profiles-file", default=None, help=argparse.SUPPRESS)
    run.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="log level",
    )
    run.add_argument("--log-file", default="", help="also log to this file")
    run.add_argument(
        "--save-profile",
        default="",
        metavar="NAME",
        help="save the connection options as profile NAME and exit",
    )
    run.add_argument(
        "--save-settings",
        action="store_true",
        help="save --endpoint and --workers as defaults and exit",
    )
    run.add_argument("-v", "--version", action="store_true", help="print the version and exit")
    return parser


def build_exclusions(args: argparse.Namespace, settings: AppSettings) -> ExclusionSet:
    extensions = parse_comma_list(args.exclude_ext)
    if args.default_exclude_ext:
        extensions += settings.default_excluded_extensions
    keywords = parse_comma_list(args.exclude_key)
    if args.default_exclude_key:
        keywords += settings.default_excluded_keywords
    return ExclusionSet.build(extensions, keywords)


def resolve_connection(args: argparse.Namespace, settings: AppSettings) -> dict[str, str]:
    """Merge the profile, explicit flags and saved defaults, flags first."""

    connection = {
        "endpoint_url": settings.endpoint_url,
        "access_key": "",
        "secret_key": "",
        "region": "",
    }
    if args.profile:
        profile = ProfileStorage(args.profiles_file).get(args.profile)
        connection.update(
            endpoint_url=profile.endpoint_url or connection["endpoint_url"],
            access_key=profile.access_key,
            secret_key=profile.secret_key,
            region=profile.region,
        )
    for field, value in (
        ("endpoint_url", args.endpoint),
        ("access_key", args.access_key),
        ("secret_key", args.secret_key),
        ("region", args.region),
    ):
        if value:
            connection[field] = value.strip()
    return connection


def save_requested(
    args: argparse.Namespace, settings: AppSettings, connection: dict[str, str]
) -> None:
    """Persist the profile and settings asked for by the save flags."""

    if args.save_profile:
        profile = ConnectionProfile(name=args.save_profile.strip(), **connection)
        ProfileStorage(args.profiles_file).save(profile)
        LOGGER.info("Saved profile %s", profile.name)
    if args.save_settings:
        if args.workers is not None:
            settings.workers = args.workers
        if args.endpoint:
            settings.endpoint_url = args.endpoint.strip()
        SettingsStorage(args.settings_file).save(settings)
        LOGGER.info("Saved settings")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        info = load_package_info()
        print(f"{info.name} version {info.version}")
        return 0

    configure_logging(args.log_level, args.log_file or None)
    settings = SettingsStorage(args.settings_file).load()

    try:
        connection = resolve_connection(args, settings)
    except ProfileNotFoundError as exc:
        LOGGER.error("%s", exc.args[0])
        return 1

    if args.save_profile or args.save_settings:
        save_requested(args, settings, connection)
        return 0

    workers = args.workers if args.workers is not None else settings.workers
    limiter = ConcurrencyLimiter(workers)
    if limiter.limit != workers:
        LOGGER.warning("Invalid worker count %s, using %d", workers, limiter.limit)

    cache: TraversalCache | None = None
    if not args.no_cache:
        cache_path = args.cache_file or default_cache_path(
            connection["access_key"], connection["secret_key"]
        )
        cache = TraversalCache(cache_path)
        if args.clear_cache:
            LOGGER.info("Clearing traversal cache %s", cache.path)
            cache.clear()

    service = S3ListingService()
    walker = BucketWalker(service, build_exclusions(args, settings), limiter, cache)
    runner = ListingRunner(
        walker,
        service=service,
        cache=cache,
        endpoint_url=connection["endpoint_url"] or None,
        access_key=connection["access_key"] or None,
        secret_key=connection["secret_key"] or None,
        region=connection["region"] or None,
    )
    tree = TreeBuilder() if args.json or args.tree else None

    writer = KeyFileWriter(args.output, queue_size=settings.queue_size)

    def emit(bucket_name: str, key: str) -> None:
        writer.put(key)
        if tree is not None:
            tree.add(bucket_name, key)

    try:
        with writer:
            summary = runner.run(emit=emit, bucket_name=args.bucket or None, prefix=args.prefix)
    except NoBucketsError as exc:
        LOGGER.error("%s", exc)
        return 1
    finally:
        if cache is not None:
            cache.close()

    if tree is not None:
        if args.json:
            tree.write_json(args.json)
            LOGGER.info("JSON tree saved to %s", args.json)
        if args.tree:
            tree.write_text(args.tree)
            LOGGER.info("Text tree saved to %s", args.tree)

    if summary.outcomes and len(summary.failed_buckets) == len(summary.outcomes):
        return 1
    return 0
