"""
cloudstore/listing.py - Pull iterators over paginated S3 list calls

One generic iterator drives every listing: objects, object versions,
multipart uploads and the parts of an upload. Each instantiation only
supplies how to fetch a page, whether a page is truncated and how to build
the request for the page after it.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Generic, TypeVar

from cloudstore.exceptions import NoMoreElementsError
from cloudstore.invoker import Invoker

logger = logging.getLogger(__name__)

MAX_KEYS = 5000

Request = dict[str, Any]
PageT = TypeVar("PageT")


def _is_truncated(page: dict[str, Any]) -> bool:
    return bool(page.get("IsTruncated", False))


class PaginatedIterator(Generic[PageT]):
    """
    Present the pages of a remote listing as a pull iterator.

    The first page is fetched eagerly by create(); every later page is
    fetched on demand, one request per call to next(), using the marker
    of the page before it. Iteration ends when a page is not truncated.

    Example:
        >>> pages = await list_objects(s3, "bucket", "data/")
        >>> while pages.has_next():
        ...     page = await pages.next()
    """

    def __init__(
        self,
        description: str,
        fetch: Callable[[Request], Awaitable[PageT]],
        request: Request,
        first_page: PageT,
        is_truncated: Callable[[PageT], bool],
        next_request: Callable[[Request, PageT], Request],
    ):
        self.description = description
        self._fetch = fetch
        self._request = request
        self._page = first_page
        self._is_truncated = is_truncated
        self._next_request = next_request
        self._first_listing = True
        self.listing_count = 1

    @classmethod
    async def create(
        cls,
        description: str,
        fetch: Callable[[Request], Awaitable[PageT]],
        request: Request,
        next_request: Callable[[Request, PageT], Request],
        is_truncated: Callable[[PageT], bool] = _is_truncated,
    ) -> "PaginatedIterator[PageT]":
        """Build the iterator, fetching the first page."""
        first = await Invoker.once("list", description, lambda: fetch(request))
        return cls(description, fetch, request, first, is_truncated, next_request)

    def has_next(self) -> bool:
        return self._first_listing or self._is_truncated(self._page)

    async def next(self) -> PageT:
        """
        Return the next page.

        Raises:
            NoMoreElementsError: if the listing is exhausted
        """
        if self._first_listing:
            # the first page was fetched when the iterator was created
            self._first_listing = False
            return self._page
        if not self._is_truncated(self._page):
            raise NoMoreElementsError(f"No more results in listing of {self.description}")
        request = self._next_request(self._request, self._page)
        logger.debug(
            "[%d] Requesting next page under %s",
            self.listing_count,
            self.description,
        )
        self._page = await Invoker.once("list", self.description, lambda: self._fetch(request))
        self._request = request
        self.listing_count += 1
        logger.debug("New listing status: %s", self)
        return self._page

    def __aiter__(self) -> "PaginatedIterator[PageT]":
        return self

    async def __anext__(self) -> PageT:
        if not self.has_next():
            raise StopAsyncIteration
        return await self.next()

    def __str__(self) -> str:
        return (
            f"Listing iterator against {self.description}; "
            f"listing count {self.listing_count}; "
            f"isTruncated={self._is_truncated(self._page)}"
        )


async def page_entries(
    pages: PaginatedIterator[dict[str, Any]], field: str
) -> AsyncIterator[dict[str, Any]]:
    """Flatten a listing into the entries held under ``field`` in each page."""
    async for page in pages:
        for entry in page.get(field, []) or []:
            yield entry


def _with_optional(request: Request, **kwargs: Any) -> Request:
    request.update({k: v for k, v in kwargs.items() if v is not None})
    return request


async def list_objects(
    s3: Any,
    bucket: str,
    prefix: str,
    delimiter: str | None = None,
    max_keys: int = MAX_KEYS,
) -> PaginatedIterator[dict[str, Any]]:
    """ListObjectsV2, continued with the continuation token."""
    request = _with_optional(
        {"Bucket": bucket, "Prefix": prefix, "MaxKeys": max_keys}, Delimiter=delimiter
    )
    return await PaginatedIterator.create(
        f"s3a://{bucket}/{prefix}",
        lambda r: s3.list_objects_v2(**r),
        request,
        next_request=lambda r, page: {**r, "ContinuationToken": page["NextContinuationToken"]},
    )


async def list_versions(
    s3: Any,
    bucket: str,
    prefix: str,
    delimiter: str | None = None,
    max_keys: int = MAX_KEYS,
) -> PaginatedIterator[dict[str, Any]]:
    """ListObjectVersions, continued with the key and version id markers."""
    request = _with_optional(
        {"Bucket": bucket, "Prefix": prefix, "MaxKeys": max_keys}, Delimiter=delimiter
    )

    def next_request(r: Request, page: dict[str, Any]) -> Request:
        return _with_optional(
            {**r},
            KeyMarker=page.get("NextKeyMarker"),
            VersionIdMarker=page.get("NextVersionIdMarker"),
        )

    return await PaginatedIterator.create(
        f"s3a://{bucket}/{prefix}",
        lambda r: s3.list_object_versions(**r),
        request,
        next_request=next_request,
    )


async def list_multipart_uploads(
    s3: Any,
    bucket: str,
    prefix: str,
    max_uploads: int = 1000,
) -> PaginatedIterator[dict[str, Any]]:
    """ListMultipartUploads, continued with the key and upload id markers."""
    request = {"Bucket": bucket, "Prefix": prefix, "MaxUploads": max_uploads}

    def next_request(r: Request, page: dict[str, Any]) -> Request:
        return _with_optional(
            {**r},
            KeyMarker=page.get("NextKeyMarker"),
            UploadIdMarker=page.get("NextUploadIdMarker"),
        )

    return await PaginatedIterator.create(
        f"s3a://{bucket}/{prefix}",
        lambda r: s3.list_multipart_uploads(**r),
        request,
        next_request=next_request,
    )


async def list_parts(
    s3: Any,
    bucket: str,
    key: str,
    upload_id: str,
) -> PaginatedIterator[dict[str, Any]]:
    """ListParts of one upload, continued with the part number marker."""
    request = {"Bucket": bucket, "Key": key, "UploadId": upload_id}
    return await PaginatedIterator.create(
        f"s3a://{bucket}/{key} upload {upload_id}",
        lambda r: s3.list_parts(**r),
        request,
        next_request=lambda r, page: {**r, "PartNumberMarker": page["NextPartNumberMarker"]},
    )
