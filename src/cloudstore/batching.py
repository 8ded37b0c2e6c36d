"""
cloudstore/batching.py - Accumulate keys and delete them in bulk
"""

import logging
from typing import Any

from cloudstore.duration import StoreDurationInfo
from cloudstore.exceptions import BulkDeleteError
from cloudstore.invoker import Invoker

logger = logging.getLogger(__name__)


class DeleteBatcher:
    """
    Queue delete candidates and issue one DeleteObjects call per full page.

    Which entries to delete is the caller's decision; this class only
    batches them. Call flush() (or leave an ``async with`` block) to send
    the final partial page.
    """

    def __init__(
        self,
        s3: Any,
        bucket: str,
        page_size: int = 500,
        invoker: Invoker | None = None,
    ):
        if page_size <= 0:
            raise ValueError(f"Invalid delete page size {page_size}")
        self.s3 = s3
        self.bucket = bucket
        self.page_size = page_size
        self.invoker = invoker
        self.pending: list[dict[str, str]] = []
        self.batches = 0
        self.deleted = 0
        self.failures: list[tuple[str, str]] = []

    def __len__(self) -> int:
        return len(self.pending)

    async def add(self, key: str, version_id: str | None = None) -> None:
        entry = {"Key": key}
        if version_id:
            entry["VersionId"] = version_id
        self.pending.append(entry)
        if len(self.pending) >= self.page_size:
            await self.flush()

    async def flush(self) -> list[tuple[str, str]]:
        """
        Delete everything queued.

        Returns:
            (key, message) for each entry the store reported as not deleted

        Raises:
            BulkDeleteError: if the call itself failed
        """
        if not self.pending:
            return []
        batch, self.pending = self.pending, []
        keys = [entry["Key"] for entry in batch]
        self.batches += 1

        async def delete() -> dict[str, Any]:
            return await self.s3.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": batch, "Quiet": True},
            )

        with StoreDurationInfo(logger, "deleting %d objects", len(batch)):
            try:
                if self.invoker is not None:
                    response = await self.invoker.retry("delete", self.bucket, True, delete)
                else:
                    response = await Invoker.once("delete", self.bucket, delete)
            except Exception as e:
                raise BulkDeleteError(
                    f"Bulk delete of {len(batch)} objects in {self.bucket} failed: {e}",
                    keys,
                    e,
                ) from e

        failures = [
            (error.get("Key", ""), f"{error.get('Code', '')} {error.get('Message', '')}".strip())
            for error in response.get("Errors", []) or []
        ]
        for key, message in failures:
            logger.warning("Failed to delete %s: %s", key, message)
        self.failures.extend(failures)
        self.deleted += len(batch) - len(failures)
        return failures

    async def close(self) -> None:
        await self.flush()

    async def __aenter__(self) -> "DeleteBatcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            await self.flush()
