"""
cloudstore/versions.py - Walk object versions and hand them to a processor

Shared by ``listversions`` and ``undelete``. The walker applies the age
filter, keeps the version statistics and stops once the processor has
accepted ``limit`` entries; what happens to each entry is the processor's
business.
"""

import logging
from datetime import datetime, timezone
from typing import Any, TextIO

from cloudstore.csv_writer import SimpleCsvWriter
from cloudstore.invoker import Invoker
from cloudstore.listing import list_versions
from cloudstore.paths import DATE_FORMAT, is_dir_marker, object_represents_directory

logger = logging.getLogger(__name__)

# copy_object cannot copy a single object larger than this
MAX_SINGLE_COPY = 5 * 1024**3


class VersionProcessor:
    """
    Receives every version and delete marker seen by a walk.

    process() returns True when the entry was acted on; accepted entries
    count towards the walk's limit.
    """

    async def process(self, summary: dict[str, Any], path: str, is_delete_marker: bool) -> bool:
        raise NotImplementedError

    async def process_tombstone(self, path: str, tombstone: dict[str, Any]) -> bool:
        return await self.process(tombstone, path, True)

    async def close(self) -> None:
        pass


class NoopProcessor(VersionProcessor):
    """Accepts everything and does nothing."""

    async def process(self, summary, path, is_delete_marker):
        return True


class ListAndProcessVersionedObjects:
    """
    List every version under a path and pass each to a processor.

    Versions modified before ``age_limit`` are skipped. Delete markers are
    always counted and offered to the processor.
    """

    def __init__(
        self,
        name: str,
        out: Any,
        s3: Any,
        bucket: str,
        prefix: str,
        processor: VersionProcessor,
        age_limit: datetime | None = None,
        limit: int = 0,
        scheme: str = "s3a",
    ):
        self.name = name
        self.out = out
        self.s3 = s3
        self.bucket = bucket
        self.prefix = prefix
        self.processor = processor
        self.age_limit = age_limit
        self.limit = limit
        self.scheme = scheme

        self.object_count = 0
        self.total_size = 0
        self.dir_markers = 0
        self.hidden = 0
        self.hidden_data = 0
        self.hidden_zero_byte_files = 0
        self.hidden_dir_markers = 0
        self.tombstones = 0
        self.file_tombstones = 0
        self.processed_count = 0

    @property
    def dir_tombstones(self) -> int:
        return self.tombstones - self.file_tombstones

    def _path(self, key: str) -> str:
        return f"{self.scheme}://{self.bucket}/{key}"

    def _accepted(self) -> bool:
        """Count an accepted entry; True once the limit is reached."""
        self.processed_count += 1
        return 0 < self.limit <= self.processed_count

    async def execute(self) -> int:
        """
        Walk the listing.

        Returns:
            the number of entries the processor accepted
        """
        if self.age_limit is not None and self.age_limit.timestamp() > 0:
            self.out.println("Skipping entries older than %s", self.age_limit.isoformat())
            if self.age_limit > datetime.now(timezone.utc):
                self.out.warn("the filter time is greater than the current time")

        self.processed_count = 0
        self.out.heading("Processing %s", self._path(self.prefix))
        try:
            pages = await list_versions(self.s3, self.bucket, self.prefix)
            finished = False
            while not finished and pages.has_next():
                page = await pages.next()
                for summary in page.get("Versions", []) or []:
                    modified = summary.get("LastModified")
                    if self.age_limit is not None and modified is not None and modified < self.age_limit:
                        continue
                    self.object_count += 1
                    size = summary.get("Size", 0)
                    self.total_size += size
                    dir_marker = is_dir_marker(summary)
                    if dir_marker:
                        self.dir_markers += 1
                    if not summary.get("IsLatest", False):
                        if dir_marker:
                            self.hidden_dir_markers += 1
                        else:
                            self.hidden += 1
                            self.hidden_data += size
                            if size == 0:
                                self.hidden_zero_byte_files += 1
                    if await self.processor.process(summary, self._path(summary["Key"]), False):
                        if self._accepted():
                            finished = True
                            break
                if finished:
                    break
                for tombstone in page.get("DeleteMarkers", []) or []:
                    self.tombstones += 1
                    if not object_represents_directory(tombstone["Key"], 0):
                        self.file_tombstones += 1
                    if await self.processor.process_tombstone(self._path(tombstone["Key"]), tombstone):
                        if self._accepted():
                            finished = True
                            break
        finally:
            await self.processor.close()
        return self.processed_count


class CsvVersionWriter(NoopProcessor):
    """Write one CSV row per accepted version or delete marker."""

    HEADERS = (
        "index",
        "key",
        "path",
        "restore",
        "latest",
        "size",
        "tombstone",
        "directory",
        "date",
        "timestamp",
        "version",
        "etag",
    )

    def __init__(
        self,
        out: TextIO,
        close_output: bool = False,
        separator: str = ",",
        log_dirs: bool = False,
        log_deleted: bool = False,
    ):
        self.log_dirs = log_dirs
        self.log_deleted = log_deleted
        self.index = 0
        self.csv = SimpleCsvWriter(out, separator, "\n", True, close_output)
        self.csv.columns(*self.HEADERS)
        self.csv.newline()

    async def process(self, summary, path, is_delete_marker):
        dir_marker = is_dir_marker(summary)
        if dir_marker and not self.log_dirs:
            return False
        if is_delete_marker and not self.log_deleted:
            return False
        self.index += 1
        modified = summary.get("LastModified")
        csv = self.csv
        csv.column_l(self.index)
        csv.column(summary["Key"])
        csv.column(path)
        csv.column_b(not is_delete_marker and not dir_marker)
        csv.column_b(summary.get("IsLatest", False))
        csv.column_l(summary.get("Size", 0))
        csv.column_b(is_delete_marker)
        csv.column_b(dir_marker)
        csv.column(modified.strftime(DATE_FORMAT) if modified else "")
        csv.column_l(int(modified.timestamp()) if modified else 0)
        csv.column(summary.get("VersionId", ""))
        csv.column(summary.get("ETag", ""))
        csv.newline()
        return True

    async def close(self) -> None:
        self.csv.close()


class VersionedFileCopier:
    """Copy a specific version of an object to another key in the bucket."""

    def __init__(self, s3: Any, bucket: str, invoker: Invoker):
        self.s3 = s3
        self.bucket = bucket
        self.invoker = invoker

    async def copy(self, source_key: str, version_id: str, dest_key: str) -> int:
        """
        HEAD the version, then copy it.

        Returns:
            the number of bytes copied
        """
        source = f"s3a://{self.bucket}/{source_key}"
        head = await self.invoker.retry(
            "head",
            source,
            True,
            lambda: self.s3.head_object(Bucket=self.bucket, Key=source_key, VersionId=version_id),
        )
        size = head.get("ContentLength", 0)
        logger.info("Copying %s @ %s (%d bytes) to %s", source, version_id, size, dest_key)
        copy_source = {"Bucket": self.bucket, "Key": source_key, "VersionId": version_id}
        if size > MAX_SINGLE_COPY:
            # managed transfer; splits into a multipart copy
            operation = lambda: self.s3.copy(copy_source, self.bucket, dest_key)
        else:
            operation = lambda: self.s3.copy_object(
                CopySource=copy_source,
                Bucket=self.bucket,
                Key=dest_key,
                MetadataDirective="COPY",
            )
        await self.invoker.retry("copy", source, True, operation)
        return size
