"""
cloudstore/store.py - Binding between a bucket, its configuration and aioboto3
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aioboto3

from cloudstore.config import (
    ASSUMED_ROLE_STS_ENDPOINT,
    ASSUMED_ROLE_STS_REGION,
    BULK_DELETE_PAGE_SIZE,
    DEFAULT_BULK_DELETE_PAGE_SIZE,
    S3ClientSettings,
    StoreConfiguration,
)
from cloudstore.invoker import Invoker, RetryPolicy
from cloudstore.paths import StorePath, key_to_path

logger = logging.getLogger(__name__)

RETRY_LIMIT = "fs.s3a.retry.limit"
RETRY_INTERVAL = "fs.s3a.retry.interval"


class S3Store:
    """
    One bucket, with the configuration resolved for it.

    Clients are opened per use through ``async with store.client() as s3``.
    """

    def __init__(self, conf: StoreConfiguration, bucket: str, scheme: str = "s3a"):
        self.bucket = bucket
        self.scheme = scheme
        self.conf = conf.for_bucket(bucket)
        self.settings = S3ClientSettings.from_configuration(conf, bucket)
        self.invoker = Invoker(
            RetryPolicy(
                max_retries=self.conf.get_int(RETRY_LIMIT, 7),
                base_delay=self.conf.get_time_seconds(RETRY_INTERVAL, 0.5, "s"),
            )
        )
        self.session: Any = None
        self._initialized = False

    @classmethod
    def for_path(cls, conf: StoreConfiguration, path: StorePath) -> "S3Store":
        return cls(conf, path.bucket, path.scheme)

    async def initialize(self) -> None:
        """Create the aioboto3 session."""
        if self._initialized:
            return
        if self.session is None:
            self.session = aioboto3.Session(**self.settings.session_kwargs())
        self._initialized = True
        logger.debug(
            "Initialized store for bucket %s (endpoint=%s, region=%s)",
            self.bucket,
            self.settings.endpoint_url(),
            self.settings.region,
        )

    @asynccontextmanager
    async def client(self) -> AsyncIterator[Any]:
        """Open an S3 client for this bucket."""
        await self.initialize()
        async with self.session.client("s3", **self.settings.client_kwargs()) as client:
            yield client

    @asynccontextmanager
    async def sts_client(self) -> AsyncIterator[Any]:
        """Open an STS client using the bucket's credentials."""
        await self.initialize()
        kwargs: dict[str, Any] = {}
        endpoint = self.conf.get(ASSUMED_ROLE_STS_ENDPOINT)
        if endpoint:
            kwargs["endpoint_url"] = endpoint if "://" in endpoint else f"https://{endpoint}"
        region = self.conf.get(ASSUMED_ROLE_STS_REGION) or self.settings.region
        if region:
            kwargs["region_name"] = region
        async with self.session.client("sts", **kwargs) as client:
            yield client

    @asynccontextmanager
    async def dynamodb_client(self, region: str | None = None) -> AsyncIterator[Any]:
        await self.initialize()
        kwargs: dict[str, Any] = {}
        region = region or self.settings.region
        if region:
            kwargs["region_name"] = region
        async with self.session.client("dynamodb", **kwargs) as client:
            yield client

    @property
    def bulk_delete_page_size(self) -> int:
        return self.conf.get_int(BULK_DELETE_PAGE_SIZE, DEFAULT_BULK_DELETE_PAGE_SIZE)

    @property
    def uri(self) -> str:
        return f"{self.scheme}://{self.bucket}"

    def key_to_path(self, key: str) -> str:
        return key_to_path(self.bucket, key, self.scheme)

    def __str__(self) -> str:
        return f"S3Store{{uri={self.uri}, endpoint={self.settings.endpoint_url()}, region={self.settings.region}}}"
