"""
Tests for cleans3guard
"""

import pytest

from cloudstore.commands.clean_s3guard import CleanS3Guard, table_path
from cloudstore.config import DYNAMO_METADATASTORE
from cloudstore.exceptions import ExitCode, ServiceUnavailableError
from cloudstore.invoker import RetryPolicy
from cloudstore.paths import StorePath

GUARDED = ["-D", f"fs.s3a.metadatastore.impl={DYNAMO_METADATASTORE}"]


@pytest.fixture
def table(dynamodb_client):
    dynamodb_client.add("/bucket", "data")
    dynamodb_client.add("/bucket/data", "a")
    dynamodb_client.add("/bucket/data", "sub")
    dynamodb_client.add("/bucket/data/sub", "b")
    dynamodb_client.add("/bucket", "database")
    dynamodb_client.add("/bucket/database", "x")
    return dynamodb_client


def remaining(ddb):
    return sorted((i["parent"]["S"], i["child"]["S"]) for i in ddb.items)


def command(output, errors):
    cleaner = CleanS3Guard(output, errors)
    cleaner.retry_policy = RetryPolicy(base_delay=0, jitter=False)
    return cleaner


class TestCleanS3Guard:
    """Test removing table entries under a path"""

    @pytest.mark.asyncio
    async def test_no_metadata_store(self, mock_session, table, output, errors):
        result = await command(output, errors).execute(["s3a://bucket/data"])
        assert result == ExitCode.ERROR
        assert "does not have a S3Guard metadata store" in output.getvalue()
        assert table.batches == []

    @pytest.mark.asyncio
    async def test_deletes_subtree(self, mock_session, table, output, errors):
        result = await command(output, errors).execute(GUARDED + ["s3a://bucket/data"])
        assert result == 0
        assert remaining(table) == [("/bucket", "database"), ("/bucket/database", "x")]
        assert table.scans == 2
        text = output.getvalue()
        assert "Deleted 4 entries from bucket" in text
        assert "hadoop s3guard import s3a://bucket/data" in text

    @pytest.mark.asyncio
    async def test_unprocessed_items_retried(self, mock_session, table, output, errors):
        table.unprocessed_once = True
        await command(output, errors).execute(GUARDED + ["s3a://bucket/data/"])
        assert len(table.batches) == 2
        assert len(table.batches[1]["bucket"]) == 1
        assert remaining(table) == [("/bucket", "database"), ("/bucket/database", "x")]

    @pytest.mark.asyncio
    async def test_batches_of_25(self, mock_session, dynamodb_client, output, errors):
        for i in range(30):
            dynamodb_client.add("/bucket/big", f"file{i}")
        await command(output, errors).execute(GUARDED + ["s3a://bucket/big"])
        assert [len(b["bucket"]) for b in dynamodb_client.batches] == [25, 6]
        assert dynamodb_client.items == []

    @pytest.mark.asyncio
    async def test_table_and_region(self, mock_session, table, output, errors):
        table.items = [{"parent": {"S": "/bucket/data"}, "child": {"S": "a"}}]
        await command(output, errors).execute(
            GUARDED
            + [
                "-D",
                "fs.s3a.s3guard.ddb.table=guard-table",
                "-D",
                "fs.s3a.s3guard.ddb.region=eu-west-1",
                "s3a://bucket/data",
            ]
        )
        assert ("dynamodb", {"region_name": "eu-west-1"}) in mock_session.client_kwargs
        assert list(table.batches[0]) == ["guard-table"]

    @pytest.mark.asyncio
    async def test_unprocessed_retries_are_limited(self, mock_session, table, output, errors):
        table.always_unprocessed = True
        cleaner = command(output, errors)
        cleaner.retry_policy = RetryPolicy(max_retries=3, base_delay=0, jitter=False)
        with pytest.raises(ServiceUnavailableError, match="4 deletes still unprocessed after 3 retries") as e:
            await cleaner.execute(GUARDED + ["s3a://bucket/data"])
        assert e.value.exit_code == ExitCode.SERVICE_UNAVAILABLE
        assert len(table.batches) == 4
        assert len(table.items) == 6


class TestTablePath:
    @pytest.mark.parametrize(
        "uri,expected",
        [
            ("s3a://bucket/", "/bucket"),
            ("s3a://bucket/data", "/bucket/data"),
            ("s3a://bucket/data/sub/", "/bucket/data/sub"),
        ],
    )
    def test_table_path(self, uri, expected):
        assert table_path(StorePath.parse(uri)) == expected
