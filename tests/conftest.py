"""
Shared fixtures: in-memory S3, STS and DynamoDB clients behind a mock
aioboto3 session.
"""

import io
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError

ENVIRONMENT = (
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "AWS_ENDPOINT_URL_S3",
    "HADOOP_CONF_DIR",
)

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"mock {code}"}}, operation)


def version(key, version_id, size=10, latest=True, modified=NOW, etag="etag"):
    """A ListObjectVersions ``Versions`` entry."""
    return {
        "Key": key,
        "VersionId": version_id,
        "Size": size,
        "IsLatest": latest,
        "LastModified": modified,
        "ETag": etag,
    }


def delete_marker(key, version_id, latest=True, modified=NOW):
    """A ListObjectVersions ``DeleteMarkers`` entry."""
    return {"Key": key, "VersionId": version_id, "IsLatest": latest, "LastModified": modified}


class MockBody:
    def __init__(self, data: bytes):
        self.data = data

    async def read(self):
        return self.data


class MockS3Client:
    """Mock S3 client for testing"""

    def __init__(self, page_size=1000):
        self.objects = {}
        self.page_size = page_size
        self.calls = []
        self.delete_requests = []
        self.version_pages = []
        self.upload_pages = []
        self.parts = {}
        self.versioning_status = ""
        self.bucket_region = "eu-west-2"
        self.fail_deletes = False
        self.delete_errors = set()
        self.copies = []
        self.created_buckets = []

    def add(self, key, body=b"", modified=NOW):
        self.objects[key] = {"Body": body, "LastModified": modified}

    async def list_objects_v2(self, Bucket, Prefix="", MaxKeys=1000, Delimiter=None, ContinuationToken=None):
        """Mock list_objects_v2 with continuation tokens"""
        self.calls.append("list_objects_v2")
        contents = []
        prefixes = []
        for key in sorted(k for k in self.objects if k.startswith(Prefix or "")):
            rest = key[len(Prefix or "") :]
            if Delimiter and Delimiter in rest:
                prefix = key[: len(Prefix or "") + rest.index(Delimiter) + 1]
                if prefix not in prefixes:
                    prefixes.append(prefix)
                continue
            body = self.objects[key]["Body"]
            contents.append(
                {
                    "Key": key,
                    "Size": len(body),
                    "LastModified": self.objects[key]["LastModified"],
                    "ETag": f'"{key}-etag"',
                }
            )
        start = int(ContinuationToken or 0)
        limit = min(MaxKeys, self.page_size)
        page = contents[start : start + limit]
        response = {
            "Contents": page,
            "KeyCount": len(page),
            "IsTruncated": start + limit < len(contents),
        }
        if start == 0 and prefixes:
            response["CommonPrefixes"] = [{"Prefix": p} for p in prefixes]
        if response["IsTruncated"]:
            response["NextContinuationToken"] = str(start + limit)
        return response

    async def head_object(self, Bucket, Key, VersionId=None):
        self.calls.append("head_object")
        if Key not in self.objects:
            raise client_error("404", "HeadObject")
        return {
            "ContentLength": len(self.objects[Key]["Body"]),
            "ContentType": "application/octet-stream",
            "LastModified": self.objects[Key]["LastModified"],
        }

    async def get_object(self, Bucket, Key):
        self.calls.append("get_object")
        if Key not in self.objects:
            raise client_error("NoSuchKey", "GetObject")
        return {"Body": MockBody(self.objects[Key]["Body"])}

    async def put_object(self, Bucket, Key, Body=b"", **kwargs):
        self.calls.append("put_object")
        self.add(Key, Body)
        return {"ETag": "mock-etag"}

    async def delete_object(self, Bucket, Key):
        self.calls.append("delete_object")
        self.objects.pop(Key, None)
        return {}

    async def delete_objects(self, Bucket, Delete):
        """Mock delete_objects; keys in delete_errors are reported as failures"""
        self.calls.append("delete_objects")
        if self.fail_deletes:
            raise client_error("InternalError", "DeleteObjects")
        self.delete_requests.append(Delete)
        errors = []
        for entry in Delete["Objects"]:
            if entry["Key"] in self.delete_errors:
                errors.append({"Key": entry["Key"], "Code": "AccessDenied", "Message": "denied"})
            else:
                self.objects.pop(entry["Key"], None)
        return {"Errors": errors} if errors else {}

    async def copy_object(self, CopySource, Bucket, Key, **kwargs):
        self.calls.append("copy_object")
        self.copies.append((CopySource, Key))
        source = CopySource["Key"]
        if source not in self.objects:
            raise client_error("NoSuchKey", "CopyObject")
        self.add(Key, self.objects[source]["Body"])
        return {"CopyObjectResult": {"ETag": "mock-etag"}}

    async def copy(self, CopySource, Bucket, Key, **kwargs):
        """Mock managed copy"""
        self.calls.append("copy")
        self.copies.append((CopySource, Key))
        self.add(Key, self.objects[CopySource["Key"]]["Body"])

    async def upload_file(self, Filename, Bucket, Key, **kwargs):
        self.calls.append("upload_file")
        self.add(Key, Path(Filename).read_bytes())

    async def download_file(self, Bucket, Key, Filename, **kwargs):
        self.calls.append("download_file")
        if Key not in self.objects:
            raise client_error("404", "HeadObject")
        Path(Filename).write_bytes(self.objects[Key]["Body"])

    async def list_object_versions(self, Bucket, Prefix="", MaxKeys=1000, Delimiter=None, KeyMarker=None, VersionIdMarker=None):
        """Serve version_pages in order; the key marker is the page index"""
        self.calls.append("list_object_versions")
        return self._scripted_page(self.version_pages, KeyMarker)

    async def list_multipart_uploads(self, Bucket, Prefix="", MaxUploads=1000, KeyMarker=None, UploadIdMarker=None):
        self.calls.append("list_multipart_uploads")
        return self._scripted_page(self.upload_pages, KeyMarker)

    @staticmethod
    def _scripted_page(pages, marker):
        index = int(marker or 0)
        page = dict(pages[index]) if pages else {}
        last = index + 1 >= len(pages)
        page["IsTruncated"] = not last
        if not last:
            page["NextKeyMarker"] = str(index + 1)
            page["NextVersionIdMarker"] = "v"
            page["NextUploadIdMarker"] = "u"
        return page

    async def list_parts(self, Bucket, Key, UploadId, PartNumberMarker=None):
        self.calls.append("list_parts")
        return {"Parts": self.parts.get(UploadId, []), "IsTruncated": False}

    async def head_bucket(self, Bucket):
        self.calls.append("head_bucket")
        return {
            "BucketRegion": self.bucket_region,
            "ResponseMetadata": {"HTTPHeaders": {"x-amz-bucket-region": self.bucket_region}},
        }

    async def create_bucket(self, **kwargs):
        self.created_buckets.append(kwargs)
        return {"Location": f"/{kwargs['Bucket']}"}

    async def get_bucket_versioning(self, Bucket):
        self.calls.append("get_bucket_versioning")
        return {"Status": self.versioning_status} if self.versioning_status else {}


class MockSTSClient:
    """Mock STS client"""

    def __init__(self):
        self.requests = []

    def _credentials(self, prefix):
        return {
            "Credentials": {
                "AccessKeyId": f"{prefix}ACCESSKEY0001",
                "SecretAccessKey": f"{prefix}secret-key-value",
                "SessionToken": f"{prefix}session-token-value",
                "Expiration": NOW + timedelta(hours=12),
            }
        }

    async def get_session_token(self, DurationSeconds):
        self.requests.append(("get_session_token", {"DurationSeconds": DurationSeconds}))
        return self._credentials("ASIA")

    async def assume_role(self, **kwargs):
        self.requests.append(("assume_role", kwargs))
        return self._credentials("ROLE")


class MockDynamoDBClient:
    """Mock DynamoDB client holding (parent, child) items"""

    def __init__(self, page_size=2):
        self.items = []
        self.page_size = page_size
        self.scans = 0
        self.batches = []
        self.unprocessed_once = False
        self.always_unprocessed = False

    def add(self, parent, child):
        self.items.append({"parent": {"S": parent}, "child": {"S": child}})

    async def scan(self, TableName, ExpressionAttributeValues, ExclusiveStartKey=None, **kwargs):
        self.scans += 1
        exact = ExpressionAttributeValues[":p"]["S"]
        under = ExpressionAttributeValues[":c"]["S"]
        matches = [
            item
            for item in self.items
            if item["parent"]["S"] == exact or item["parent"]["S"].startswith(under)
        ]
        start = ExclusiveStartKey["index"] if ExclusiveStartKey else 0
        page = {"Items": matches[start : start + self.page_size]}
        if start + self.page_size < len(matches):
            page["LastEvaluatedKey"] = {"index": start + self.page_size}
        return page

    async def batch_write_item(self, RequestItems):
        self.batches.append(RequestItems)
        (table, requests), = RequestItems.items()
        if self.always_unprocessed:
            return {"UnprocessedItems": {table: requests}}
        if self.unprocessed_once and len(requests) > 1:
            self.unprocessed_once = False
            processed, unprocessed = requests[:-1], requests[-1:]
        else:
            processed, unprocessed = requests, []
        for request in processed:
            key = request["DeleteRequest"]["Key"]
            self.items = [i for i in self.items if i != key]
        return {"UnprocessedItems": {table: unprocessed} if unprocessed else {}}


class MockSession:
    """Stands in for aioboto3.Session; hands out the shared mock clients."""

    def __init__(self, s3, sts, dynamodb):
        self.clients = {"s3": s3, "sts": sts, "dynamodb": dynamodb}
        self.client_kwargs = []

    def client(self, service, **kwargs):
        self.client_kwargs.append((service, kwargs))

        @asynccontextmanager
        async def open_client():
            yield self.clients[service]

        return open_client()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Keep the caller's AWS settings and .env files out of the tests."""
    for name in ENVIRONMENT:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    with patch("cloudstore.config.load_dotenv"):
        yield


@pytest.fixture
def s3_client():
    return MockS3Client()


@pytest.fixture
def sts_client():
    return MockSTSClient()


@pytest.fixture
def dynamodb_client():
    return MockDynamoDBClient()


@pytest.fixture
def mock_session(s3_client, sts_client, dynamodb_client):
    session = MockSession(s3_client, sts_client, dynamodb_client)
    with patch("aioboto3.Session", return_value=session):
        yield session


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def errors():
    return io.StringIO()
