import tempfile
import threading
import unittest
from pathlib import Path

from fake_s3 import ClientFactory, FakeS3Client, access_denied

from s3_lister.cache import TraversalCache
from s3_lister.exclusions import ExclusionSet
from s3_lister.runner import ListingRunner, NoBucketsError
from s3_lister.services import S3ListingService
from s3_lister.walker import BucketWalker, ConcurrencyLimiter


class Emitted:
    def __init__(self):
        self.items = []
        self._lock = threading.Lock()

    def __call__(self, bucket, key):
        with self._lock:
            self.items.append((bucket, key))


class ListingRunnerTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.cache_path = Path(self._tmp.name) / "run.cache"

    def tearDown(self):
        self._tmp.cleanup()

    def _runner(self, client, cache=None, exclusions=None, region=None):
        factory = ClientFactory(client)
        service = S3ListingService(client_factory=factory)
        walker = BucketWalker(service, exclusions or ExclusionSet(), ConcurrencyLimiter(2), cache)
        runner = ListingRunner(
            walker,
            service=service,
            cache=cache,
            endpoint_url="https://store.local",
            access_key="ak",
            secret_key="sk",
            region=region,
        )
        return runner, factory

    def test_walks_every_discovered_bucket(self):
        client = FakeS3Client({"one": ["a.txt", "d/b.txt"], "two": ["c.txt"]})
        runner, _ = self._runner(client)
        emitted = Emitted()

        summary = runner.run(emit=emitted)

        self.assertEqual(
            [("one", "a.txt"), ("one", "d/b.txt"), ("two", "c.txt")],
            sorted(emitted.items),
        )
        self.assertEqual(["one", "two"], list(summary.outcomes))
        self.assertEqual([], summary.failed_buckets)
        self.assertEqual(3, summary.files_emitted)

    def test_named_bucket_restricts_the_run(self):
        client = FakeS3Client({"one": ["a.txt"], "two": ["c.txt"]})
        runner, _ = self._runner(client)
        emitted = Emitted()

        summary = runner.run(emit=emitted, bucket_name="two")

        self.assertEqual([("two", "c.txt")], emitted.items)
        self.assertEqual(["two"], list(summary.outcomes))

    def test_discovery_failure_falls_back_to_named_bucket(self):
        client = FakeS3Client({"docs": ["a.txt"]}, list_buckets_error=access_denied("ListBuckets"))
        runner, _ = self._runner(client)
        emitted = Emitted()

        summary = runner.run(emit=emitted, bucket_name="docs")

        self.assertEqual([("docs", "a.txt")], emitted.items)
        self.assertEqual([], summary.failed_buckets)

    def test_discovery_failure_without_bucket_is_fatal(self):
        client = FakeS3Client({"docs": ["a.txt"]}, list_buckets_error=access_denied("ListBuckets"))
        runner, _ = self._runner(client)

        with self.assertRaises(NoBucketsError):
            runner.run(emit=Emitted())

    def test_failing_bucket_does_not_stop_the_next_one(self):
        client = FakeS3Client(
            {"broken": ["x.txt"], "fine": ["y.txt"]},
            errors={("broken", ""): access_denied()},
        )
        runner, _ = self._runner(client)
        emitted = Emitted()

        summary = runner.run(emit=emitted)

        self.assertEqual([("fine", "y.txt")], emitted.items)
        self.assertEqual(["broken"], summary.failed_buckets)
        self.assertEqual([""], summary.outcomes["broken"].stats.failed_prefixes)

    def test_partial_bucket_is_not_reported_as_failed(self):
        client = FakeS3Client(
            {"docs": ["ok.txt", "bad/x.txt"]},
            errors={("docs", "bad/"): access_denied()},
        )
        runner, _ = self._runner(client)

        summary = runner.run(emit=Emitted())

        self.assertEqual([], summary.failed_buckets)
        self.assertTrue(summary.outcomes["docs"].stats.partial)

    def test_bucket_list_is_cached_per_credentials(self):
        client = FakeS3Client({"docs": ["a.txt"]}, regions={"docs": "eu-west-1"})
        with TraversalCache(self.cache_path) as cache:
            first, _ = self._runner(client, cache)
            self.assertEqual("docs", first.discover_buckets()[0].name)

            second, _ = self._runner(client, cache)
            buckets = second.discover_buckets()

        self.assertEqual(1, client.list_buckets_calls)
        self.assertEqual("eu-west-1", buckets[0].location)

    def test_rerun_with_cache_emits_only_new_subtrees(self):
        client = FakeS3Client({"docs": ["a.txt", "img/b.txt"]})
        with TraversalCache(self.cache_path) as cache:
            runner, _ = self._runner(client, cache)
            runner.run(emit=Emitted())

            client.add_key("docs", "img/late.txt")
            client.add_key("docs", "new/c.txt")
            emitted = Emitted()
            runner.run(emit=emitted)

        self.assertEqual([("docs", "new/c.txt")], emitted.items)

    def test_clearing_cache_reproduces_the_same_key_set(self):
        client = FakeS3Client({"docs": ["a.txt", "img/b.txt", "img/sub/c.txt"]})
        with TraversalCache(self.cache_path) as cache:
            runner, _ = self._runner(client, cache)
            first = Emitted()
            runner.run(emit=first)
            cache.clear()
            second = Emitted()
            runner.run(emit=second)

        self.assertEqual(set(first.items), set(second.items))
        self.assertEqual(3, len(second.items))

    def test_endpoint_and_credentials_reach_the_client(self):
        client = FakeS3Client({"docs": []})
        runner, factory = self._runner(client)

        runner.run(emit=Emitted())

        for _, kwargs in factory.calls:
            self.assertEqual("https://store.local", kwargs["endpoint_url"])
            self.assertEqual("ak", kwargs["aws_access_key_id"])

    def test_configured_region_reaches_listing_clients_with_endpoint(self):
        client = FakeS3Client({"docs": ["a.txt"]})
        runner, factory = self._runner(client, region="auto")
        emitted = Emitted()

        runner.run(emit=emitted, bucket_name="docs")

        self.assertEqual([("docs", "a.txt")], emitted.items)
        self.assertEqual(2, len(factory.calls))
        for _, kwargs in factory.calls:
            self.assertEqual("https://store.local", kwargs["endpoint_url"])
            self.assertEqual("auto", kwargs["region_name"])


if __name__ == "__main__":
    unittest.main()
