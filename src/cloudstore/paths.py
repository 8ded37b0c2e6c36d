"""
cloudstore/paths.py - s3a:// path handling and object classification
"""

import logging
import posixpath
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from urllib.parse import urlparse

from cloudstore.exceptions import UsageError

logger = logging.getLogger(__name__)

S3_SCHEMES = ("s3a", "s3", "s3n")
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class StorePath:
    """A bucket plus an object key, parsed from ``s3a://bucket/key``."""

    bucket: str
    key: str = ""
    scheme: str = "s3a"

    @classmethod
    def parse(cls, uri: str) -> "StorePath":
        parsed = urlparse(uri)
        if parsed.scheme not in S3_SCHEMES:
            raise UsageError(f"Not an S3 path: {uri}")
        if not parsed.netloc:
            raise UsageError(f"No bucket in path: {uri}")
        return cls(bucket=parsed.netloc, key=parsed.path.lstrip("/"), scheme=parsed.scheme)

    @property
    def is_root(self) -> bool:
        return self.key == ""

    @property
    def name(self) -> str:
        return posixpath.basename(self.key.rstrip("/"))

    def child(self, relative: str) -> "StorePath":
        base = self.key.rstrip("/")
        key = f"{base}/{relative.lstrip('/')}" if base else relative.lstrip("/")
        return StorePath(self.bucket, key, self.scheme)

    def with_key(self, key: str) -> "StorePath":
        return StorePath(self.bucket, key, self.scheme)

    def __str__(self) -> str:
        return f"{self.scheme}://{self.bucket}/{self.key}"


def is_store_uri(uri: str) -> bool:
    return urlparse(uri).scheme in S3_SCHEMES


def path_to_key(path: StorePath) -> str:
    return path.key


def key_to_path(bucket: str, key: str, scheme: str = "s3a") -> str:
    return f"{scheme}://{bucket}/{key}"


def object_represents_directory(name: str, size: int) -> bool:
    """
    A directory marker is a zero-byte object whose key ends in '/'.

    A '/'-suffixed object with data is logged as suspicious and is not
    a marker.
    """
    has_dir_name = name.endswith("/")
    is_empty = size == 0
    if has_dir_name and not is_empty:
        logger.warning(
            "Warning: object %s has length %d so is not a directory marker",
            name,
            size,
        )
    return has_dir_name and is_empty


def is_dir_marker(summary: dict[str, Any]) -> bool:
    return object_represents_directory(summary["Key"], summary.get("Size", 0))


def format_date(value: datetime | None) -> str:
    return value.strftime(DATE_FORMAT) if value else ""


def stringify(summary: dict[str, Any]) -> str:
    """One-line description of a ListObjectsV2 entry."""
    return '"{}"\tsize: [{}]\t{}\ttag: {}'.format(
        summary["Key"],
        summary.get("Size", 0),
        format_date(summary.get("LastModified")),
        summary.get("ETag", ""),
    )
