import unittest

from botocore.exceptions import ClientError

from fake_s3 import ClientFactory, FakeS3Client, access_denied

from s3_lister.models import BucketInfo
from s3_lister.services import S3ListingService, select_buckets


class RecordingClient:
    def __init__(self, response):
        self.response = response
        self.kwargs = []

    def list_objects_v2(self, **kwargs):
        self.kwargs.append(kwargs)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class S3ListingServiceTests(unittest.TestCase):
    def setUp(self):
        self.service = S3ListingService(client_factory=lambda *_, **__: None)

    def test_root_listing_omits_prefix_and_token(self):
        client = RecordingClient({"Contents": [{"Key": "a.txt"}], "IsTruncated": False})

        page = self.service.list_page(client, bucket_name="docs")

        self.assertEqual([{"Bucket": "docs", "Delimiter": "/"}], client.kwargs)
        self.assertEqual(["a.txt"], page.keys)
        self.assertEqual([], page.prefixes)
        self.assertFalse(page.truncated)
        self.assertIsNone(page.next_marker)

    def test_page_passes_prefix_and_marker(self):
        client = RecordingClient(
            {
                "Contents": [{"Key": "img/"}, {"Key": "img/a.png"}],
                "CommonPrefixes": [{"Prefix": "img/sub/"}],
                "IsTruncated": True,
                "NextContinuationToken": "token-2",
            }
        )

        page = self.service.list_page(client, bucket_name="docs", prefix="img/", marker="token-1")

        self.assertEqual(
            {"Bucket": "docs", "Delimiter": "/", "Prefix": "img/", "ContinuationToken": "token-1"},
            client.kwargs[0],
        )
        self.assertEqual(["img/a.png"], page.keys)
        self.assertEqual(["img/sub/"], page.prefixes)
        self.assertTrue(page.truncated)
        self.assertEqual("token-2", page.next_marker)

    def test_listing_errors_propagate(self):
        client = RecordingClient(access_denied())

        with self.assertRaises(ClientError):
            self.service.list_page(client, bucket_name="docs")

    def test_list_buckets_reports_location_hints(self):
        client = FakeS3Client({"one": [], "two": []}, regions={"one": "eu-west-1"})

        buckets = self.service.list_buckets(client)

        self.assertEqual(
            [BucketInfo("one", "eu-west-1"), BucketInfo("two", None)],
            buckets,
        )

    def test_create_client_passes_credentials_and_endpoint(self):
        factory = ClientFactory(object())
        service = S3ListingService(client_factory=factory)

        service.create_client(endpoint_url="https://minio.local", access_key="ak", secret_key="sk")

        name, kwargs = factory.calls[0]
        self.assertEqual("s3", name)
        self.assertEqual("https://minio.local", kwargs["endpoint_url"])
        self.assertEqual("ak", kwargs["aws_access_key_id"])
        self.assertEqual("sk", kwargs["aws_secret_access_key"])
        self.assertEqual("s3v4", kwargs["config"].signature_version)
        self.assertNotIn("region_name", kwargs)

    def test_create_client_without_credentials_uses_default_chain(self):
        factory = ClientFactory(object())
        service = S3ListingService(client_factory=factory)

        service.create_client()

        _, kwargs = factory.calls[0]
        self.assertNotIn("aws_access_key_id", kwargs)
        self.assertNotIn("endpoint_url", kwargs)

    def test_bucket_client_prefers_location_over_default_region(self):
        factory = ClientFactory(object())
        service = S3ListingService(client_factory=factory)

        service.client_for_bucket(BucketInfo("one", "eu-west-1"))
        service.client_for_bucket(BucketInfo("two"), default_region="us-east-2")
        service.client_for_bucket(BucketInfo("three", "eu-west-1"), endpoint_url="https://minio.local")

        self.assertEqual("eu-west-1", factory.calls[0][1]["region_name"])
        self.assertEqual("us-east-2", factory.calls[1][1]["region_name"])
        self.assertEqual("eu-west-1", factory.calls[2][1]["region_name"])
        self.assertEqual("https://minio.local", factory.calls[2][1]["endpoint_url"])

    def test_bucket_client_keeps_region_with_explicit_endpoint(self):
        factory = ClientFactory(object())
        service = S3ListingService(client_factory=factory)

        service.client_for_bucket(
            BucketInfo("docs"), endpoint_url="https://r2.example", default_region="auto"
        )

        _, kwargs = factory.calls[0]
        self.assertEqual("https://r2.example", kwargs["endpoint_url"])
        self.assertEqual("auto", kwargs["region_name"])

    def test_half_credential_pair_logs_warning(self):
        factory = ClientFactory(object())
        service = S3ListingService(client_factory=factory)

        with self.assertLogs("s3_lister.services", level="WARNING") as logs:
            service.create_client(access_key="ak")

        self.assertIn("access key", logs.output[0])
        self.assertNotIn("aws_access_key_id", factory.calls[0][1])

    def test_bucket_without_location_logs_warning(self):
        factory = ClientFactory(object())
        service = S3ListingService(client_factory=factory)

        with self.assertLogs("s3_lister.services", level="WARNING"):
            service.client_for_bucket(BucketInfo("bare"))


class SelectBucketsTests(unittest.TestCase):
    def setUp(self):
        self.buckets = [BucketInfo("one", "eu-west-1"), BucketInfo("two")]

    def test_without_name_returns_everything(self):
        self.assertEqual(self.buckets, select_buckets(self.buckets, None))

    def test_named_bucket_keeps_its_location(self):
        self.assertEqual([BucketInfo("one", "eu-west-1")], select_buckets(self.buckets, "one"))

    def test_unknown_bucket_falls_back_to_bare_entry(self):
        with self.assertLogs("s3_lister.services", level="WARNING"):
            selected = select_buckets(self.buckets, "three")

        self.assertEqual([BucketInfo("three")], selected)

    def test_empty_discovery_falls_back_to_named_bucket(self):
        with self.assertLogs("s3_lister.services", level="WARNING"):
            selected = select_buckets([], "docs")

        self.assertEqual([BucketInfo("docs")], selected)

    def test_empty_discovery_without_name_selects_nothing(self):
        self.assertEqual([], select_buckets([], ""))


if __name__ == "__main__":
    unittest.main()
