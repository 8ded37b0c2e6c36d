"""
cloudstore/commands/restore_object.py - Copy an old version of an object
"""

from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import StoreEntryPoint
from cloudstore.exceptions import ExitCode, UsageError
from cloudstore.paths import StorePath, is_store_uri
from cloudstore.versions import VersionedFileCopier


class RestoreObject(StoreEntryPoint):
    """
    Copy ``<path> @ <version>`` to ``<dest>``, which may be a full path in
    the same bucket or a key relative to the bucket root.
    """

    NAME = "restore"
    USAGE = "Usage: restore [-verbose] <S3A path> <version> <dest path>"

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(3, 3)

    async def run(self, argv: list[str]) -> int:
        args = self.process_args(argv)
        conf = self.create_preconfigured_config()
        source = StorePath.parse(args[0])
        version = args[1]
        if is_store_uri(args[2]):
            dest = StorePath.parse(args[2])
            if dest.bucket != source.bucket:
                raise UsageError(f"Destination {dest} is not in bucket {source.bucket}")
        else:
            dest = source.with_key(args[2].lstrip("/"))

        store = self.bind_store(conf, source)
        self.println("restoring %s @ %s to %s", source, version, dest)
        with StoreDurationInfo(None, "restore", out=self.out):
            async with store.client() as s3:
                copier = VersionedFileCopier(s3, source.bucket, store.invoker)
                size = await copier.copy(source.key, version, dest.key)
        self.println("Restored object of size %s bytes to %s\n", f"{size:,}", dest)
        return ExitCode.SUCCESS
