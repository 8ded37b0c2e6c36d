"""
cloudstore/commands/undelete.py - Remove file tombstones so the previous
version of each file becomes visible again
"""

import logging
from typing import Any

from cloudstore.batching import DeleteBatcher
from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import AGE, LIMIT, SINCE, STANDARD_OPTS, StoreEntryPoint, optusage
from cloudstore.exceptions import ExitCode
from cloudstore.paths import StorePath, object_represents_directory
from cloudstore.utils import commas
from cloudstore.versions import ListAndProcessVersionedObjects, VersionProcessor

logger = logging.getLogger(__name__)

DELETE_PAGE_SIZE = 1000


class TombstoneRemover(VersionProcessor):
    """Queue every file delete marker for deletion; versions are left alone."""

    def __init__(self, command: StoreEntryPoint, batcher: DeleteBatcher):
        self.command = command
        self.batcher = batcher

    async def process(self, summary: dict[str, Any], path: str, is_delete_marker: bool) -> bool:
        if not is_delete_marker:
            return False
        if object_represents_directory(summary["Key"], 0):
            return False
        self.command.println("%s @ %s", path, summary.get("VersionId"))
        await self.batcher.add(summary["Key"], summary.get("VersionId"))
        return True


class Undelete(StoreEntryPoint):
    NAME = "undelete"
    USAGE = (
        "Usage: undelete <path>\n"
        + STANDARD_OPTS
        + optusage(LIMIT, "limit", "limit of files to undelete")
        + optusage(AGE, "seconds", "Only include versions created in this time interval")
        + optusage(SINCE, "epoch-time", "Only include versions after this time")
    )

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 1)
        self.add_value_options(LIMIT, AGE, SINCE)

    async def run(self, argv: list[str]) -> int:
        paths = self.process_args(argv)
        conf = self.create_preconfigured_config()
        limit = self.get_int_option(LIMIT, 0)
        age_limit = self.get_age_limit()
        source = StorePath.parse(paths[0])
        store = self.bind_store(conf, source)

        with StoreDurationInfo(None, self.NAME, out=self.out):
            async with store.client() as s3:
                batcher = DeleteBatcher(s3, source.bucket, DELETE_PAGE_SIZE, store.invoker)
                listing = ListAndProcessVersionedObjects(
                    self.NAME,
                    self,
                    s3,
                    source.bucket,
                    source.key,
                    TombstoneRemover(self, batcher),
                    age_limit,
                    limit,
                    source.scheme,
                )
                count = await listing.execute()
                # final deletion
                await batcher.flush()
            self.println()
            for key, message in batcher.failures:
                self.println("   Failed to delete tombstone of %s: %s", source.with_key(key), message)
            self.println("Removed %s tombstones\n", commas(count - len(batcher.failures)))
            if batcher.failures:
                self.println("Failure count: %d", len(batcher.failures))
        return ExitCode.SUCCESS
