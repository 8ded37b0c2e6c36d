"""
Tests for the version walker, the CSV version writer and the version copier
"""

import io
from datetime import datetime, timedelta, timezone

import pytest

from cloudstore.entry_point import StoreEntryPoint
from cloudstore.invoker import Invoker, RetryPolicy
from cloudstore.versions import (
    MAX_SINGLE_COPY,
    CsvVersionWriter,
    ListAndProcessVersionedObjects,
    NoopProcessor,
    VersionedFileCopier,
)

from conftest import NOW, MockS3Client, delete_marker, version


class RecordingProcessor(NoopProcessor):
    def __init__(self):
        self.seen = []
        self.closed = False

    async def process(self, summary, path, is_delete_marker):
        self.seen.append((path, is_delete_marker))
        return True

    async def close(self):
        self.closed = True


@pytest.fixture
def console(output, errors):
    return StoreEntryPoint(output, errors)


@pytest.fixture
def s3():
    client = MockS3Client()
    client.version_pages = [
        {
            "Versions": [
                version("data/file1", "v2", size=100),
                version("data/file1", "v1", size=50, latest=False),
                version("data/empty", "v1", size=0, latest=False),
                version("data/dir/", "v1", size=0),
                version("data/old/", "v0", size=0, latest=False),
            ],
            "DeleteMarkers": [delete_marker("data/gone", "d1")],
        },
        {
            "Versions": [version("data/file2", "v1", size=7)],
            "DeleteMarkers": [delete_marker("data/deleted-dir/", "d2")],
        },
    ]
    return client


def walker(console, s3, processor, age_limit=None, limit=0):
    return ListAndProcessVersionedObjects(
        "test", console, s3, "bucket", "data/", processor, age_limit, limit
    )


class TestListAndProcessVersionedObjects:
    """Test the walk over version pages"""

    @pytest.mark.asyncio
    async def test_counters(self, console, s3):
        listing = walker(console, s3, RecordingProcessor())
        count = await listing.execute()
        assert count == 8
        assert listing.object_count == 6
        assert listing.total_size == 157
        assert listing.dir_markers == 2
        assert listing.hidden == 2
        assert listing.hidden_data == 50
        assert listing.hidden_zero_byte_files == 1
        assert listing.hidden_dir_markers == 1
        assert listing.tombstones == 2
        assert listing.file_tombstones == 1
        assert listing.dir_tombstones == 1

    @pytest.mark.asyncio
    async def test_versions_then_tombstones_per_page(self, console, s3):
        processor = RecordingProcessor()
        await walker(console, s3, processor).execute()
        assert processor.seen[5] == ("s3a://bucket/data/gone", True)
        assert processor.seen[6] == ("s3a://bucket/data/file2", False)
        assert processor.closed

    @pytest.mark.asyncio
    async def test_limit(self, console, s3):
        processor = RecordingProcessor()
        count = await walker(console, s3, processor, limit=3).execute()
        assert count == 3
        assert len(processor.seen) == 3
        assert s3.calls.count("list_object_versions") == 1

    @pytest.mark.asyncio
    async def test_age_limit_skips_old_versions(self, console, s3, output):
        s3.version_pages[0]["Versions"][1]["LastModified"] = NOW - timedelta(days=30)
        processor = RecordingProcessor()
        listing = walker(console, s3, processor, age_limit=NOW - timedelta(days=1))
        await listing.execute()
        assert listing.object_count == 5
        assert "Skipping entries older than" in output.getvalue()

    @pytest.mark.asyncio
    async def test_future_age_limit_warns(self, console, s3, output):
        future = datetime.now(timezone.utc) + timedelta(days=1)
        await walker(console, s3, RecordingProcessor(), age_limit=future).execute()
        assert "WARNING: the filter time is greater than the current time" in output.getvalue()

    @pytest.mark.asyncio
    async def test_processor_closed_on_failure(self, console, s3):
        class Exploding(RecordingProcessor):
            async def process(self, summary, path, is_delete_marker):
                raise RuntimeError("boom")

        processor = Exploding()
        with pytest.raises(RuntimeError):
            await walker(console, s3, processor).execute()
        assert processor.closed


class TestCsvVersionWriter:
    """Test the CSV rows written for versions"""

    @pytest.mark.asyncio
    async def test_rows(self, console, s3):
        out = io.StringIO()
        writer = CsvVersionWriter(out, separator=",")
        count = await walker(console, s3, writer).execute()
        lines = out.getvalue().splitlines()
        assert lines[0] == (
            '"index","key","path","restore","latest","size","tombstone",'
            '"directory","date","timestamp","version","etag"'
        )
        # directory markers and delete markers excluded by default
        assert count == 4
        assert len(lines) == 5
        assert lines[1] == (
            '1,"data/file1","s3a://bucket/data/file1",1,1,100,0,0,'
            f'"2024-06-01 12:00:00",{int(NOW.timestamp())},"v2","etag"'
        )

    @pytest.mark.asyncio
    async def test_dirs_and_deleted(self, console, s3):
        out = io.StringIO()
        writer = CsvVersionWriter(out, separator="\t", log_dirs=True, log_deleted=True)
        count = await walker(console, s3, writer).execute()
        assert count == 8
        tombstone = [line for line in out.getvalue().splitlines() if '"data/gone"' in line][0]
        columns = tombstone.split("\t")
        assert columns[3] == "0"
        assert columns[6] == "1"


class TestVersionedFileCopier:
    """Test copying a version of an object"""

    @pytest.mark.asyncio
    async def test_copy_object_used_for_small_files(self):
        s3 = MockS3Client()
        s3.add("data/file", b"contents")
        copier = VersionedFileCopier(s3, "bucket", Invoker(RetryPolicy(base_delay=0)))
        size = await copier.copy("data/file", "v1", "restored/file")
        assert size == 8
        assert s3.objects["restored/file"]["Body"] == b"contents"
        assert s3.copies[0][0] == {"Bucket": "bucket", "Key": "data/file", "VersionId": "v1"}
        assert "copy_object" in s3.calls

    @pytest.mark.asyncio
    async def test_managed_copy_for_large_files(self):
        s3 = MockS3Client()
        s3.add("data/big", b"x")

        async def head_object(Bucket, Key, VersionId=None):
            return {"ContentLength": MAX_SINGLE_COPY + 1}

        s3.head_object = head_object
        copier = VersionedFileCopier(s3, "bucket", Invoker(RetryPolicy(base_delay=0)))
        assert await copier.copy("data/big", "v1", "restored/big") == MAX_SINGLE_COPY + 1
        assert "copy" in s3.calls
        assert "copy_object" not in s3.calls
