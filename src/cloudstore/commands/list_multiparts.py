"""
cloudstore/commands/list_multiparts.py - CSV listing of pending multipart uploads
"""

from cloudstore.csv_writer import SimpleCsvWriter
from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import AGE, LIMIT, SINCE, STANDARD_OPTS, StoreEntryPoint, optusage
from cloudstore.exceptions import ExitCode
from cloudstore.listing import list_multipart_uploads, list_parts, page_entries
from cloudstore.paths import StorePath, format_date
from cloudstore.utils import commas

OUTPUT = "out"
SEPARATOR = "separator"


class ListMultiparts(StoreEntryPoint):
    """
    One row per upload under the path: key, bytes uploaded so far, number of
    parts, initiation date and upload id.
    """

    NAME = "listmultiparts"
    USAGE = (
        "Usage: listmultiparts <path>\n"
        + STANDARD_OPTS
        + optusage(LIMIT, "limit", "limit of uploads to list")
        + optusage(OUTPUT, "file", "output file")
        + optusage(SEPARATOR, "string", "Separator if not <tab>")
        + optusage(AGE, "seconds", "Only include uploads created in this time interval")
        + optusage(SINCE, "epoch-time", "Only include uploads after this time")
    )

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 1)
        self.add_value_options(LIMIT, OUTPUT, SEPARATOR, AGE, SINCE)

    async def run(self, argv: list[str]) -> int:
        paths = self.process_args(argv)
        conf = self.create_preconfigured_config()
        limit = self.get_int_option(LIMIT, 0)
        age_limit = self.get_age_limit()
        source = StorePath.parse(paths[0])
        store = self.bind_store(conf, source)
        separator = self.get_option(SEPARATOR, "\t")

        entries = 0
        total_parts = 0
        total_size = 0
        with StoreDurationInfo(None, self.NAME, out=self.out):
            with self.output_stream(self.get_option(OUTPUT)) as dest:
                csv = SimpleCsvWriter(dest, separator, "\n", True)
                csv.columns("index", "key", "size", "blocks", "date", "id")
                csv.newline()
                async with store.client() as s3:
                    uploads = await list_multipart_uploads(s3, source.bucket, source.key)
                    async for upload in page_entries(uploads, "Uploads"):
                        initiated = upload.get("Initiated")
                        if initiated is not None and initiated < age_limit:
                            continue
                        key = upload["Key"]
                        upload_id = upload["UploadId"]
                        size = 0
                        parts = 0
                        listing = await list_parts(s3, source.bucket, key, upload_id)
                        async for part in page_entries(listing, "Parts"):
                            parts += 1
                            size += part.get("Size", 0)
                        entries += 1
                        csv.column_l(entries)
                        csv.column(key)
                        csv.column_l(size)
                        csv.column_l(parts)
                        csv.column(format_date(initiated))
                        csv.column(upload_id)
                        csv.newline()
                        total_parts += parts
                        total_size += size
                        if 0 < limit <= entries:
                            break
                csv.flush()
            self.println()
            self.println(
                "Found %s uploads under %s with total size %s bytes in %s parts",
                commas(entries),
                source,
                commas(total_size),
                commas(total_parts),
            )
            self.println()
        return ExitCode.SUCCESS
