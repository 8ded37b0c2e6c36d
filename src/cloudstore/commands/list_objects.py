"""
cloudstore/commands/list_objects.py - List the raw objects under a path
"""

import logging

from cloudstore.batching import DeleteBatcher
from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import LIMIT, STANDARD_OPTS, StoreEntryPoint, optusage
from cloudstore.exceptions import ExitCode
from cloudstore.invoker import Invoker
from cloudstore.listing import list_objects
from cloudstore.paths import StorePath, is_dir_marker, stringify

logger = logging.getLogger(__name__)

PURGE = "purge"
DELETE = "delete"
QUIET = "q"

DELETE_PAGE_SIZE = 500


class ListObjects(StoreEntryPoint):
    """
    List every object under a path, with optional deletion of the objects
    or of just the directory markers.
    """

    NAME = "listobjects"
    USAGE = (
        "Usage: listobjects <path>\n"
        + STANDARD_OPTS
        + optusage(DELETE, text="delete the objects")
        + optusage(LIMIT, "limit", "limit of files to list")
        + optusage(PURGE, text="purge directory markers")
        + optusage(QUIET, text="quiet output")
    )

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 1)
        self.add_flags(PURGE, DELETE, QUIET)
        self.add_value_options(LIMIT)

    async def run(self, argv: list[str]) -> int:
        paths = self.process_args(argv)
        conf = self.create_preconfigured_config()
        limit = self.get_int_option(LIMIT, 0)
        purge = self.has_option(PURGE)
        quiet = self.has_option(QUIET)
        delete = self.has_option(DELETE)
        if delete:
            self.println("objects will be deleted")
            purge = False
        elif purge:
            self.println("directory markers will be purged")

        source = StorePath.parse(paths[0])
        store = self.bind_store(conf, source)
        markers: list[str] = []
        prefixes: list[str] = []
        object_count = 0
        size = 0

        with StoreDurationInfo(logger, "listobjects"):
            async with store.client() as s3:
                objects = await list_objects(s3, source.bucket, source.key)
                deleter = DeleteBatcher(s3, source.bucket, DELETE_PAGE_SIZE)
                self.heading("Listing objects under %s", source)
                finished = False
                while not finished and objects.has_next():
                    page = await objects.next()
                    for summary in page.get("Contents", []) or []:
                        object_count += 1
                        size += summary.get("Size", 0)
                        key = summary["Key"]
                        if not quiet:
                            extra = ""
                            if self.is_verbose():
                                head = await Invoker.once(
                                    "head", key, lambda: s3.head_object(Bucket=source.bucket, Key=key)
                                )
                                extra = f"\t{head.get('ContentType', '')}"
                            self.println("[%05d] %s%s", object_count, stringify(summary), extra)
                        if is_dir_marker(summary):
                            markers.append(key)
                        if delete:
                            await deleter.add(key)
                        if 0 < limit <= object_count:
                            finished = True
                            break
                    prefixes.extend(p["Prefix"] for p in page.get("CommonPrefixes", []) or [])
                if delete:
                    await deleter.flush()

                self.println()
                action = "Deleted" if delete else "Found"
                self.println("%s %d objects with total size %d bytes", action, object_count, size)
                if prefixes:
                    self.println()
                    self.heading("%s prefixes", len(prefixes))
                    for prefix in prefixes:
                        self.println(prefix)

                if markers:
                    self.println()
                    self.heading("marker count: %d", len(markers))
                    if purge:
                        self.println("Purging all directory markers")
                    purger = DeleteBatcher(s3, source.bucket, DELETE_PAGE_SIZE)
                    for marker in markers:
                        self.println(marker)
                        if purge:
                            await purger.add(marker)
                    if purge:
                        await purger.flush()
                    elif not delete:
                        self.println("\nTo delete these markers, rerun with the option -%s", PURGE)
                elif purge:
                    self.heading("No markers found to purge")
        return ExitCode.SUCCESS
