"""
cloudstore/commands/bucket_metadata.py - HEAD a bucket and print where it lives
"""

from cloudstore.entry_point import StoreEntryPoint
from cloudstore.exceptions import ExitCode
from cloudstore.invoker import Invoker
from cloudstore.paths import StorePath

REGION_HEADER = "x-amz-bucket-region"


class BucketMetadata(StoreEntryPoint):
    NAME = "bucketmetadata"
    USAGE = "Usage: bucketmetadata [-debug] <path>"

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 1)

    async def run(self, argv: list[str]) -> int:
        args = self.process_args(argv)
        conf = self.create_preconfigured_config()
        path = StorePath.parse(args[0])
        self.heading("Getting bucket info for %s", path)
        store = self.bind_store(conf, path)
        async with store.client() as s3:
            response = await Invoker.once(
                "headBucket", str(path), lambda: s3.head_bucket(Bucket=path.bucket)
            )
        headers = response.get("ResponseMetadata", {}).get("HTTPHeaders", {})
        self.println("Bucket metadata from S3")
        self.println(
            "Region %s\nLocation Name %s\nLocation Type %s\n",
            response.get("BucketRegion") or headers.get(REGION_HEADER),
            response.get("BucketLocationName"),
            response.get("BucketLocationType"),
        )
        return ExitCode.SUCCESS
