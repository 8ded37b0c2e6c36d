"""
cloudstore/commands/bulk_delete.py - Delete the paths listed in a file
"""

from pathlib import Path

from cloudstore.batching import DeleteBatcher
from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import StoreEntryPoint
from cloudstore.exceptions import ExitCode
from cloudstore.paths import StorePath, is_store_uri
from cloudstore.utils import read_lines

PAGE = "page"


class BulkDeleteCommand(StoreEntryPoint):
    NAME = "bulkdelete"
    USAGE = (
        "Usage: bulkdelete [-verbose] [-page <pagesize>] <path> <file>\n"
        "<file> is a text file with full/relative paths to files under <path>\n"
        "   Empty lines and lines starting with # are ignored.\n"
        "   As are root paths of stores\n"
        "<pagesize> is the page size if less than the store page size "
    )

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(2, 2)
        self.add_value_options(PAGE)

    def qualify(self, base: StorePath, line: str) -> StorePath | None:
        """
        Resolve a line of the file to a path in the bucket of ``base``.

        Relative paths are resolved against the root of the bucket; root
        paths and paths in other buckets are dropped.
        """
        line = line.strip()
        if is_store_uri(line):
            path = StorePath.parse(line)
            if path.bucket != base.bucket:
                self.warn("Skipping %s: not in bucket %s", line, base.bucket)
                return None
        else:
            path = base.with_key(line.lstrip("/"))
        return None if path.is_root else path

    async def run(self, argv: list[str]) -> int:
        args = self.process_args(argv)
        conf = self.create_preconfigured_config()
        page_limit = self.get_int_option(PAGE, 0)

        base = StorePath.parse(args[0])
        self.heading("Bulk delete under %s", base)
        filename = args[1]
        if not Path(filename).exists():
            self.errorln('File not found "%s"', filename)
            return ExitCode.NOT_FOUND

        to_delete = read_lines(filename)
        paths = [p for p in (self.qualify(base, line) for line in to_delete) if p is not None]
        files = len(paths)
        skipped = len(to_delete) - files
        self.println("%d files to delete", files)
        if skipped:
            self.println("%d entries skipped", skipped)
        if files == 0:
            return ExitCode.SUCCESS

        store = self.bind_store(conf, base)
        page_size = store.bulk_delete_page_size
        self.println("Store page size = %s", page_size)
        if 0 < page_limit < page_size:
            page_size = page_limit
            self.println("Delete page size = %s", page_size)
        self.println()

        duration = StoreDurationInfo()
        async with store.client() as s3:
            batcher = DeleteBatcher(s3, base.bucket, page_size, store.invoker)
            for path in paths:
                self.println("  %s", path)
                await batcher.add(path.key)
            await batcher.flush()
        duration.finished()

        for key, message in batcher.failures:
            self.println("   Failed to delete %s: %s", base.with_key(key), message)
        self.heading("Summary")
        self.println(
            "Bulk delete of %d file(s) finished, duration: %s",
            files,
            duration.duration_string(),
        )
        self.println("Batch count: %d. Failure count: %d", batcher.batches, len(batcher.failures))
        return ExitCode.SUCCESS
