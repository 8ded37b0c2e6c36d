"""
cloudstore/commands/mkbucket.py - Create a bucket in a region
"""

import logging

from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import StoreEntryPoint
from cloudstore.exceptions import ExitCode
from cloudstore.invoker import Invoker
from cloudstore.paths import StorePath

logger = logging.getLogger(__name__)

# the one region which rejects an explicit location constraint
DEFAULT_REGION = "us-east-1"


class MkBucket(StoreEntryPoint):
    NAME = "mkbucket"
    USAGE = "Usage: mkbucket <region> <S3A path>"

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(2, 2)

    async def run(self, argv: list[str]) -> int:
        args = self.process_args(argv)
        conf = self.create_preconfigured_config()
        region = args[0]
        path = StorePath.parse(args[1])
        store = self.bind_store(conf, path)

        request = {"Bucket": path.bucket}
        if region != DEFAULT_REGION:
            request["CreateBucketConfiguration"] = {"LocationConstraint": region}

        with StoreDurationInfo(logger, "Creating bucket %s", path.bucket):
            async with store.client() as s3:
                response = await Invoker.once(
                    "createBucket", str(path), lambda: s3.create_bucket(**request)
                )
        self.println("Created bucket %s at %s", path.bucket, response.get("Location", region))
        return ExitCode.SUCCESS
