"""
cloudstore/capabilities.py - Versioned registry of store path capabilities

Every capability is declared in one table together with the release which
introduced it and how its value is determined: a constant, an option in the
configuration, or a probe of the bucket itself.
"""

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from cloudstore import __version__
from cloudstore.exceptions import UnsupportedVersionError
from cloudstore.invoker import Invoker
from cloudstore.paths import StorePath

logger = logging.getLogger(__name__)

ETAGS_AVAILABLE = "fs.capability.etags.available"
ETAGS_PRESERVED_IN_RENAME = "fs.capability.etags.preserved.in.rename"
MULTIPART_UPLOADER = "fs.capability.multipart.uploader"
OUTPUTSTREAM_ABORTABLE = "fs.capability.outputstream.abortable"
PATHS_PERMISSIONS = "fs.capability.paths.permissions"
PATHS_APPEND = "fs.capability.paths.append"
DIRECTORY_MARKER_AWARE = "fs.s3a.capability.directory.marker.aware"
DIRECTORY_MARKER_POLICY_KEEP = "fs.s3a.capability.directory.marker.policy.keep"
DIRECTORY_MARKER_POLICY_DELETE = "fs.s3a.capability.directory.marker.policy.delete"
DIRECTORY_MARKER_POLICY_AUTHORITATIVE = "fs.s3a.capability.directory.marker.policy.authoritative"
MULTIPART_UPLOADS_ENABLED = "fs.s3a.capability.multipart.uploads.enabled"
BULK_DELETE = "fs.capability.bulk.delete"
VERSIONED = "fs.s3a.capability.versioned"

DIRECTORY_MARKER_RETENTION = "fs.s3a.directory.marker.retention"
MULTIPART_UPLOADS_OPTION = "fs.s3a.multipart.uploads.enabled"


def parse_version(version: str) -> tuple[int, ...]:
    """``"1.1.0"`` -> ``(1, 1, 0)``; non-numeric suffixes are dropped."""
    parts = []
    for part in version.split("."):
        match = re.match(r"\d+", part)
        if not match:
            break
        parts.append(int(match.group()))
    return tuple(parts)


@dataclass(frozen=True)
class Capability:
    """One entry in the registry."""

    name: str
    since: str
    description: str
    value: bool | None = None
    option: str | None = None
    option_value: str = "true"
    probed: bool = False


CAPABILITIES: dict[str, Capability] = {
    c.name: c
    for c in (
        Capability(ETAGS_AVAILABLE, "1.0", "objects have etags", value=True),
        Capability(ETAGS_PRESERVED_IN_RENAME, "1.0", "rename keeps etags", value=False),
        Capability(MULTIPART_UPLOADER, "1.0", "multipart upload API", value=True),
        Capability(OUTPUTSTREAM_ABORTABLE, "1.0", "uploads can be aborted", value=True),
        Capability(PATHS_PERMISSIONS, "1.0", "POSIX permissions", value=False),
        Capability(PATHS_APPEND, "1.0", "append to files", value=False),
        Capability(BULK_DELETE, "1.0", "DeleteObjects batches", value=True),
        Capability(DIRECTORY_MARKER_AWARE, "1.0", "understands directory markers", value=True),
        Capability(
            DIRECTORY_MARKER_POLICY_KEEP,
            "1.0",
            "directory markers are retained",
            option=DIRECTORY_MARKER_RETENTION,
            option_value="keep",
        ),
        Capability(
            DIRECTORY_MARKER_POLICY_DELETE,
            "1.0",
            "directory markers are deleted",
            option=DIRECTORY_MARKER_RETENTION,
            option_value="delete",
        ),
        Capability(
            DIRECTORY_MARKER_POLICY_AUTHORITATIVE,
            "1.0",
            "directory markers kept in authoritative paths",
            option=DIRECTORY_MARKER_RETENTION,
            option_value="authoritative",
        ),
        Capability(
            MULTIPART_UPLOADS_ENABLED,
            "1.0",
            "multipart uploads enabled",
            option=MULTIPART_UPLOADS_OPTION,
        ),
        Capability(VERSIONED, "1.1", "bucket has versioning enabled", probed=True),
    )
}

OPTION_DEFAULTS = {
    DIRECTORY_MARKER_RETENTION: "keep",
    MULTIPART_UPLOADS_OPTION: "true",
}


class StoreCapabilities:
    """
    Answer ``has_path_capability`` for a store.

    Unknown capabilities are reported as absent. A capability introduced in
    a release later than ``version`` raises UnsupportedVersionError.
    """

    def __init__(self, store: Any, version: str = __version__):
        self.store = store
        self.version = version
        self._version = parse_version(version)
        self._probes: dict[str, Callable[[StorePath], Awaitable[bool]]] = {
            VERSIONED: self._probe_versioned,
        }

    @staticmethod
    def names() -> list[str]:
        return sorted(CAPABILITIES)

    def lookup(self, capability: str) -> Capability | None:
        entry = CAPABILITIES.get(capability)
        if entry is not None and parse_version(entry.since) > self._version:
            raise UnsupportedVersionError(
                f"Capability {capability} requires version {entry.since}; this is {self.version}"
            )
        return entry

    async def has_path_capability(self, path: StorePath, capability: str) -> bool:
        entry = self.lookup(capability)
        if entry is None:
            logger.debug("Unknown capability %s", capability)
            return False
        if entry.value is not None:
            return entry.value
        if entry.option is not None:
            value = self.store.conf.get(entry.option, OPTION_DEFAULTS.get(entry.option, ""))
            return (value or "").lower() == entry.option_value
        return await self._probes[entry.name](path)

    async def _probe_versioned(self, path: StorePath) -> bool:
        async with self.store.client() as s3:
            response = await Invoker.once(
                "getBucketVersioning",
                str(path),
                lambda: s3.get_bucket_versioning(Bucket=path.bucket),
            )
        status = response.get("Status", "")
        logger.debug("Versioning status of %s: %s", path.bucket, status or "never enabled")
        return status == "Enabled"
