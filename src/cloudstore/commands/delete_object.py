"""
cloudstore/commands/delete_object.py - Delete a single object
"""

from cloudstore.entry_point import StoreEntryPoint
from cloudstore.exceptions import ExitCode
from cloudstore.invoker import Invoker
from cloudstore.paths import StorePath


class DeleteObject(StoreEntryPoint):
    NAME = "deleteobject"
    USAGE = "Usage: deleteobject <S3A path>"

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 1)

    async def run(self, argv: list[str]) -> int:
        paths = self.process_args(argv)
        conf = self.create_preconfigured_config()
        source = StorePath.parse(paths[0])
        store = self.bind_store(conf, source)
        async with store.client() as s3:
            await Invoker.once(
                "delete",
                str(source),
                lambda: s3.delete_object(Bucket=source.bucket, Key=source.key),
            )
        self.println("Deleted %s", source)
        return ExitCode.SUCCESS
