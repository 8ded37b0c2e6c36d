"""
cloudstore/commands/clean_s3guard.py - Remove the S3Guard table entries under a path

S3Guard kept a DynamoDB table keyed by ``parent`` (``/bucket/dir``) and
``child`` (the entry name). Cleaning a path deletes the entry for the path
itself and every entry whose parent lies under it.
"""

import asyncio
import logging
import posixpath
from typing import Any

from cloudstore.config import (
    DYNAMO_METADATASTORE,
    METADATASTORE_IMPL,
    S3GUARD_DDB_REGION,
    S3GUARD_DDB_TABLE,
)
from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import StoreEntryPoint
from cloudstore.exceptions import ExitCode, ServiceUnavailableError
from cloudstore.invoker import Invoker, RetryPolicy
from cloudstore.listing import PaginatedIterator, page_entries
from cloudstore.paths import StorePath

logger = logging.getLogger(__name__)

# BatchWriteItem limit
DDB_BATCH_SIZE = 25


def table_path(path: StorePath) -> str:
    """The S3Guard key form of a path: ``/bucket/key``."""
    return posixpath.join("/", path.bucket, path.key.rstrip("/")).rstrip("/") or "/"


class CleanS3Guard(StoreEntryPoint):
    NAME = "cleans3guard"
    USAGE = "Usage: cleans3guard <S3A path>"

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 1)
        self.retry_policy = RetryPolicy(base_delay=0.1, max_delay=5.0)

    async def run(self, argv: list[str]) -> int:
        args = self.process_args(argv)
        conf = self.create_preconfigured_config()
        path = StorePath.parse(args[0])
        store = self.bind_store(conf, path)
        if store.conf.get(METADATASTORE_IMPL) != DYNAMO_METADATASTORE:
            self.println("S3 bucket %s does not have a S3Guard metadata store", store.uri)
            return ExitCode.ERROR

        table = store.conf.get(S3GUARD_DDB_TABLE) or path.bucket
        region = store.conf.get(S3GUARD_DDB_REGION)
        self.println("Removing from S3Guard all entries under %s", path)
        with StoreDurationInfo(logger, "Cleaning table %s", table):
            async with store.dynamodb_client(region) as ddb:
                deleted = await self.delete_subtree(ddb, table, path)
        self.println("Deleted %d entries from %s", deleted, table)
        self.println("")
        self.println("S3Guard cleanup completed. To repopulate the directory, run")
        self.println("")
        self.println("  hadoop s3guard import %s", path)
        self.println("")
        return ExitCode.SUCCESS

    async def delete_subtree(self, ddb: Any, table: str, path: StorePath) -> int:
        prefix = table_path(path)
        request: dict[str, Any] = {
            "TableName": table,
            "ProjectionExpression": "parent, child",
            "FilterExpression": "parent = :p OR begins_with(parent, :c)",
            "ExpressionAttributeValues": {
                ":p": {"S": prefix},
                ":c": {"S": prefix.rstrip("/") + "/"},
            },
        }
        pages = await PaginatedIterator.create(
            f"dynamodb table {table}",
            lambda r: ddb.scan(**r),
            request,
            next_request=lambda r, page: {**r, "ExclusiveStartKey": page["LastEvaluatedKey"]},
            is_truncated=lambda page: "LastEvaluatedKey" in page,
        )
        keys = []
        if not path.is_root:
            parent, child = posixpath.split(prefix)
            keys.append({"parent": {"S": parent}, "child": {"S": child}})
        async for item in page_entries(pages, "Items"):
            keys.append({"parent": item["parent"], "child": item["child"]})

        for start in range(0, len(keys), DDB_BATCH_SIZE):
            batch = keys[start : start + DDB_BATCH_SIZE]
            if self.is_verbose():
                for key in batch:
                    self.println("  %s/%s", key["parent"]["S"], key["child"]["S"])
            await self.write_batch(ddb, table, [{"DeleteRequest": {"Key": k}} for k in batch])
        return len(keys)

    async def write_batch(self, ddb: Any, table: str, requests: list[dict]) -> None:
        pending = {table: requests}
        attempt = 0
        while pending:
            response = await Invoker.once(
                "batchWriteItem", table, lambda: ddb.batch_write_item(RequestItems=pending)
            )
            pending = response.get("UnprocessedItems") or {}
            if pending:
                remaining = len(pending.get(table, []))
                if attempt >= self.retry_policy.max_retries:
                    raise ServiceUnavailableError(
                        f"batchWriteItem on {table}: {remaining} deletes still unprocessed"
                        f" after {attempt} retries"
                    )
                attempt += 1
                logger.info("Retrying %d unprocessed deletes", remaining)
                await asyncio.sleep(self.retry_policy.delay(attempt))
