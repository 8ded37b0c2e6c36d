#!/usr/bin/env python3
"""
Command line entry point: ``cloudstore <command> [options] [args]``.

Examples:
    # List every object under a path
    cloudstore listobjects s3a://bucket/data -limit 100

    # Save the version history of a path as CSV
    cloudstore listversions s3a://bucket/data -out versions.csv -separator ,

    # Restore deleted files under a path
    cloudstore undelete s3a://bucket/data -age 3600

    # Copy a directory tree into a bucket with 32 workers
    cloudstore cloudup -s ./build -d s3a://bucket/build -t 32 -o
"""

import sys

from cloudstore import __version__
from cloudstore.cloudup import Cloudup
from cloudstore.commands.assume_role import AssumeRole
from cloudstore.commands.bucket_metadata import BucketMetadata
from cloudstore.commands.bulk_delete import BulkDeleteCommand
from cloudstore.commands.clean_s3guard import CleanS3Guard
from cloudstore.commands.delete_object import DeleteObject
from cloudstore.commands.fetch_tokens import FetchTokens
from cloudstore.commands.iam_policy import IamPolicy
from cloudstore.commands.list_multiparts import ListMultiparts
from cloudstore.commands.list_objects import ListObjects
from cloudstore.commands.list_versions import ListVersions
from cloudstore.commands.mkbucket import MkBucket
from cloudstore.commands.path_capability import PathCapability
from cloudstore.commands.regions import Regions
from cloudstore.commands.restore_object import RestoreObject
from cloudstore.commands.s3a_diag import S3ADiag, StoreDiag
from cloudstore.commands.session_keys import SessionKeys
from cloudstore.commands.undelete import Undelete
from cloudstore.entry_point import StoreEntryPoint, setup_logging
from cloudstore.exceptions import ExitCode

COMMANDS: dict[str, type[StoreEntryPoint]] = {
    command.NAME: command
    for command in (
        AssumeRole,
        BucketMetadata,
        BulkDeleteCommand,
        CleanS3Guard,
        Cloudup,
        DeleteObject,
        FetchTokens,
        IamPolicy,
        ListMultiparts,
        ListObjects,
        ListVersions,
        MkBucket,
        PathCapability,
        Regions,
        RestoreObject,
        S3ADiag,
        SessionKeys,
        StoreDiag,
        Undelete,
    )
}


def usage() -> str:
    lines = [f"cloudstore {__version__}", "Usage: cloudstore <command> [options] [args]", "", "Commands:"]
    lines.extend(f"  {name}" for name in sorted(COMMANDS))
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    """Run the named command; returns its exit code."""
    argv = sys.argv[1:] if argv is None else argv
    setup_logging("-debug" in argv)
    if not argv or argv[0] in ("-h", "--help", "help"):
        print(usage(), file=sys.stderr)
        return ExitCode.USAGE
    command = COMMANDS.get(argv[0])
    if command is None:
        print(f"Unknown command: {argv[0]}\n{usage()}", file=sys.stderr)
        return ExitCode.USAGE
    return command.main(argv[1:])


if __name__ == "__main__":
    sys.exit(main())
