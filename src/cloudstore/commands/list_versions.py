"""
cloudstore/commands/list_versions.py - CSV listing of every object version
"""

from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import AGE, LIMIT, SINCE, STANDARD_OPTS, StoreEntryPoint, optusage
from cloudstore.exceptions import ExitCode
from cloudstore.paths import StorePath
from cloudstore.utils import byte_count_to_display_size, commas
from cloudstore.versions import CsvVersionWriter, ListAndProcessVersionedObjects

DELETED = "deleted"
DIRS = "dirs"
OUTPUT = "out"
QUIET = "q"
SEPARATOR = "separator"


class ListVersions(StoreEntryPoint):
    NAME = "listversions"
    USAGE = (
        "Usage: listversions <path>\n"
        + STANDARD_OPTS
        + optusage(LIMIT, "limit", "limit of files to list")
        + optusage(OUTPUT, "file", "output file")
        + optusage(QUIET, text="quiet output")
        + optusage(SEPARATOR, "string", "Separator if not <tab>")
        + optusage(AGE, "seconds", "Only include versions created in this time interval")
        + optusage(SINCE, "epoch-time", "Only include versions after this time")
        + optusage(DIRS, text="include directory markers")
        + optusage(DELETED, text="include delete markers")
    )

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 1)
        self.add_flags(QUIET, DIRS, DELETED)
        self.add_value_options(LIMIT, OUTPUT, SEPARATOR, AGE, SINCE)

    async def run(self, argv: list[str]) -> int:
        paths = self.process_args(argv)
        conf = self.create_preconfigured_config()
        limit = self.get_int_option(LIMIT, 0)
        age_limit = self.get_age_limit()
        source = StorePath.parse(paths[0])
        store = self.bind_store(conf, source)
        separator = self.get_option(SEPARATOR, "\t")
        output = self.get_option(OUTPUT)

        with StoreDurationInfo(None, self.NAME, out=self.out):
            with self.output_stream(output) as dest:
                writer = CsvVersionWriter(
                    dest,
                    close_output=False,
                    separator=separator,
                    log_dirs=self.has_option(DIRS),
                    log_deleted=self.has_option(DELETED),
                )
                async with store.client() as s3:
                    listing = ListAndProcessVersionedObjects(
                        self.NAME,
                        self,
                        s3,
                        source.bucket,
                        source.key,
                        writer,
                        age_limit,
                        limit,
                        source.scheme,
                    )
                    count = await listing.execute()

            if not self.has_option(QUIET):
                self.print_summary(listing, count)
        return ExitCode.SUCCESS

    def print_summary(self, listing: ListAndProcessVersionedObjects, count: int) -> None:
        self.println()
        self.println("Listed %s entries", commas(count))
        self.println(
            "Found %s objects under %s with total size %s bytes (%s)",
            commas(listing.object_count),
            listing.prefix or "/",
            commas(listing.total_size),
            byte_count_to_display_size(listing.total_size),
        )
        self.println("Directory markers: %s", commas(listing.dir_markers))
        self.println(
            "Hidden file versions: %s with size %s bytes; zero byte files %s",
            commas(listing.hidden),
            commas(listing.hidden_data),
            commas(listing.hidden_zero_byte_files),
        )
        self.println("Hidden directory markers: %s", commas(listing.hidden_dir_markers))
        self.println(
            "Tombstones: %s; file tombstones %s; directory tombstones %s",
            commas(listing.tombstones),
            commas(listing.file_tombstones),
            commas(listing.dir_tombstones),
        )
        self.println()
