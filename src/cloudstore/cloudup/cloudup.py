"""
cloudstore/cloudup/cloudup.py - Parallel upload/download/copy of a directory tree

The largest files are started first, the rest follow in random order; a
fixed pool of workers drains the queue. Failures either stop the job (the
default) or are counted and reported at the end (``-i``).
"""

import asyncio
import logging
import random

from cloudstore.cloudup.entries import Outcome, UploadEntry, UploadState, plan_uploads
from cloudstore.cloudup.filesystems import (
    FileStatus,
    FileSystem,
    LocalFileSystem,
    S3FileSystem,
    copy_file,
    is_under,
)
from cloudstore.config import StoreConfiguration
from cloudstore.duration import MinMeanMax, StoreDurationInfo, human_time
from cloudstore.entry_point import StoreEntryPoint, optusage
from cloudstore.exceptions import ExitCode, PathExistsError, StoreNotFoundError, UsageError
from cloudstore.paths import StorePath, is_store_uri
from cloudstore.utils import check_argument, commas

logger = logging.getLogger(__name__)

SOURCE = "s"
DEST = "d"
OVERWRITE = "o"
IGNORE_FAILURES = "i"
LARGEST = "l"
THREADS = "t"

DEFAULT_LARGEST = 4
DEFAULT_THREADS = 16


class Cloudup(StoreEntryPoint):
    NAME = "cloudup"
    USAGE = (
        "Usage: cloudup -s source -d dest [-o] [-i] [-l <largest>] [-t threads]\n"
        + optusage(SOURCE, "source", "source directory or file")
        + optusage(DEST, "dest", "destination directory or file")
        + optusage(OVERWRITE, text="overwrite existing files")
        + optusage(IGNORE_FAILURES, text="ignore failures")
        + optusage(LARGEST, "largest", f"number of large files to upload first (default {DEFAULT_LARGEST})")
        + optusage(THREADS, "threads", f"number of worker threads (default {DEFAULT_THREADS})")
        + optusage("verbose", text="verbose output")
    )

    def __init__(self, out=None, err=None, rng: random.Random | None = None):
        super().__init__(out, err)
        self.create_command_format(0, 0)
        self.add_value_options(SOURCE, DEST, LARGEST, THREADS)
        self.add_flags(OVERWRITE, IGNORE_FAILURES)
        self.rng = rng
        self.overwrite = False
        self.ignore_failures = False
        self.exit = asyncio.Event()
        self.first_exception: Exception | None = None
        self.source_fs: FileSystem | None = None
        self.dest_fs: FileSystem | None = None
        self.source_path = ""
        self.dest_path = ""
        self.dest_status: FileStatus | None = None
        self.file_durations = MinMeanMax("files")

    def filesystem_for(self, conf: StoreConfiguration, path: str) -> FileSystem:
        if is_store_uri(path):
            return S3FileSystem(self.bind_store(conf, StorePath.parse(path)))
        return LocalFileSystem()

    async def run(self, argv: list[str]) -> int:
        if not argv:
            self.errorln(self.USAGE)
            return ExitCode.USAGE
        self.process_args(argv)
        source = self.get_option(SOURCE)
        dest = self.get_option(DEST)
        if not source or not dest:
            self.errorln(self.USAGE)
            raise UsageError("Both source and destination must be specified")
        largest = self.get_int_option(LARGEST, DEFAULT_LARGEST)
        threads = self.get_int_option(THREADS, DEFAULT_THREADS)
        check_argument(threads > 0, f"Thread count must be positive: {threads}")
        self.overwrite = self.has_option(OVERWRITE)
        self.ignore_failures = self.has_option(IGNORE_FAILURES)

        conf = self.create_preconfigured_config()
        self.source_fs = self.filesystem_for(conf, source)
        self.dest_fs = self.filesystem_for(conf, dest)
        self.source_path = self.source_fs.qualify(source)
        self.dest_path = self.dest_fs.qualify(dest)
        logger.info(
            "Uploading from %s to %s; threads=%d; large files=%d overwrite=%s, ignore failures=%s",
            self.source_path,
            self.dest_path,
            threads,
            largest,
            self.overwrite,
            self.ignore_failures,
        )
        async with self.source_fs, self.dest_fs:
            return await self.upload(largest, threads)

    async def upload(self, largest: int, threads: int) -> int:
        source_status = await self.source_fs.status(self.source_path)
        if source_status is None:
            raise StoreNotFoundError(f"Source not found: {self.source_path}")
        self.dest_status = await self.dest_fs.status(self.dest_path)
        if self.source_fs.uri == self.dest_fs.uri:
            check_argument(
                not is_under(self.source_path, self.dest_path),
                f"Source path {self.source_path} is under destination path {self.dest_path}",
            )
            check_argument(
                not is_under(self.dest_path, self.source_path),
                f"Destination path {self.dest_path} is under source path {self.source_path}",
            )

        with StoreDurationInfo(logger, "Listing source files under %s", self.source_path):
            uploads = await self.create_upload_list()
        upload_count = len(uploads)
        logger.info("Files to upload = %d", upload_count)
        if upload_count == 0:
            self.println("No files submitted")
            return ExitCode.SUCCESS

        plan = plan_uploads(uploads, largest, self.rng)
        queue: asyncio.Queue[UploadEntry] = asyncio.Queue()
        completion: asyncio.Queue[Outcome] = asyncio.Queue()
        upload_size = 0
        for index, entry in enumerate(plan):
            if index < largest:
                logger.info("Large file %d: size = %s: %s", index + 1, entry.size_str, entry.source)
            upload_size += self.submit(queue, entry)

        upload_duration = StoreDurationInfo()
        workers = [
            asyncio.create_task(self.worker(queue, completion), name=f"cloudup-worker-{i}")
            for i in range(min(threads, upload_count))
        ]
        try:
            outcomes = []
            for i in range(upload_count):
                outcomes.append(await completion.get())
                logger.debug("Operation %d completed", i + 1)
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
        upload_duration.finished()

        self.summarize("Upload", upload_duration, upload_size, "Files", self.file_durations)
        self.println("Uploads attempted: %d, size %s, duration %s", upload_count, commas(upload_size), upload_duration)
        self.println("Seconds per file %.3fs", upload_duration.value() / 1000.0 / upload_count)
        return self.process_outcomes(outcomes)

    def process_outcomes(self, outcomes: list[Outcome]) -> int:
        final_uploaded_size = 0
        errors = 0
        not_executed = 0
        exception = self.first_exception
        for outcome in outcomes:
            if not outcome.executed:
                not_executed += 1
            try:
                outcome.maybe_raise()
                final_uploaded_size += outcome.bytes_uploaded
            except Exception as e:
                errors += 1
                if exception is None:
                    exception = e
        if not_executed:
            self.println("Files not uploaded: %d", not_executed)
        if exception is not None:
            self.warn("Upload failed due to an error")
            self.warn("Number of errors: %d actual bytes uploaded = %s", errors, commas(final_uploaded_size))
            if not self.ignore_failures:
                raise exception
        return ExitCode.SUCCESS

    def submit(self, queue: asyncio.Queue, upload: UploadEntry) -> int:
        """Queue a ready upload; returns its size, or -1 if it was not ready."""
        if not upload.in_state(UploadState.READY):
            return -1
        upload.state = UploadState.QUEUED
        logger.debug("Queued %s", upload)
        queue.put_nowait(upload)
        return upload.size

    async def worker(self, queue: asyncio.Queue, completion: asyncio.Queue) -> None:
        while True:
            upload = await queue.get()
            try:
                completion.put_nowait(await self.upload_one_file(upload))
            finally:
                queue.task_done()

    async def create_upload_list(self) -> list[UploadEntry]:
        uploads = []
        for status in await self.source_fs.list_files(self.source_path):
            uploads.append(UploadEntry(status.path, status.size, self.final_path(status.path)))
        return uploads

    def final_path(self, source_file: str) -> str:
        """Where a source file goes under the destination."""
        relative = self.source_fs.relative(self.source_path, source_file)
        if relative:
            return self.dest_fs.join(self.dest_path, relative)
        # the source is a single file
        if self.dest_status is None or not self.dest_status.is_dir:
            return self.dest_path
        return self.dest_fs.join(self.dest_path, self.source_fs.name(source_file))

    async def upload_one_file(self, upload: UploadEntry) -> Outcome:
        if self.exit.is_set():
            return Outcome.not_executed(upload)
        if not upload.in_state(UploadState.QUEUED):
            logger.warning("Skipping upload of %s", upload)
            return Outcome.not_executed(upload)
        upload.started()
        try:
            logger.info("Uploading %s to %s (size: %s)", upload.source, upload.dest, upload.size_str)
            if not self.overwrite and await self.dest_fs.status(upload.dest) is not None:
                raise PathExistsError(f"Destination exists: {upload.dest}")
            await copy_file(self.source_fs, upload.source, self.dest_fs, upload.dest)
            if self.is_verbose():
                self.print_(".")
                self.flush()
        except Exception as e:
            upload.ended(UploadState.FAILED, e)
            logger.warning("Failed to upload %s : %s", upload.source, e)
            logger.debug("Upload to %s failed", upload.dest, exc_info=True)
            self.note_exception(e)
            return Outcome.failed(upload, e)
        upload.ended(UploadState.SUCCEEDED)
        self.file_durations.add(upload.duration)
        logger.info(
            "Successful upload of %s to %s in %s s", upload.source, upload.dest, human_time(upload.duration)
        )
        return Outcome.succeeded(upload)

    def note_exception(self, ex: Exception) -> None:
        if self.first_exception is None:
            self.first_exception = ex
            if not self.ignore_failures:
                self.exit.set()
