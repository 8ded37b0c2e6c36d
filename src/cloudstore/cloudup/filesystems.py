"""
cloudstore/cloudup/filesystems.py - The local and S3 sides of an upload

Both sides expose the same small surface: qualify a path, stat it, list the
files under it and build child paths. ``copy_file`` picks the transfer for a
pair of filesystems.
"""

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cloudstore.exceptions import StoreNotFoundError
from cloudstore.invoker import Invoker
from cloudstore.listing import list_objects, page_entries
from cloudstore.paths import StorePath, object_represents_directory
from cloudstore.store import S3Store

logger = logging.getLogger(__name__)

FILE_SCHEME = "file://"


@dataclass(frozen=True)
class FileStatus:
    path: str
    size: int = 0
    is_dir: bool = False


def is_under(path: str, parent: str) -> bool:
    """True if ``path`` is ``parent`` or lies beneath it."""
    parent = parent.rstrip("/")
    path = path.rstrip("/")
    return path == parent or path.startswith(parent + "/")


class LocalFileSystem:
    """The local filesystem; blocking calls run in worker threads."""

    uri = "file:///"

    def qualify(self, path: str) -> str:
        if path.startswith(FILE_SCHEME):
            path = path[len(FILE_SCHEME) :]
        return os.path.abspath(os.path.expanduser(path))

    async def status(self, path: str) -> FileStatus | None:
        try:
            st = await asyncio.to_thread(os.stat, path)
        except FileNotFoundError:
            return None
        is_dir = os.path.isdir(path)
        return FileStatus(path, 0 if is_dir else st.st_size, is_dir)

    async def list_files(self, path: str) -> list[FileStatus]:
        """Every file under ``path``; a file lists as itself."""
        status = await self.status(path)
        if status is None:
            raise StoreNotFoundError(f"No such file or directory: {path}")
        if not status.is_dir:
            return [status]
        return await asyncio.to_thread(self._walk, path)

    @staticmethod
    def _walk(path: str) -> list[FileStatus]:
        files = []
        for root, _dirs, names in os.walk(path):
            for name in sorted(names):
                full = os.path.join(root, name)
                files.append(FileStatus(full, os.path.getsize(full)))
        return files

    def relative(self, base: str, path: str) -> str:
        rel = os.path.relpath(path, base)
        return "" if rel == "." else rel.replace(os.sep, "/")

    def join(self, base: str, relative: str) -> str:
        return os.path.join(base, *relative.split("/"))

    def name(self, path: str) -> str:
        return os.path.basename(path.rstrip("/"))

    async def __aenter__(self) -> "LocalFileSystem":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        pass

    def __str__(self) -> str:
        return "LocalFileSystem"


class S3FileSystem:
    """
    One bucket. Enter it with ``async with`` to open the client shared by
    all the transfers.
    """

    def __init__(self, store: S3Store):
        self.store = store
        self.s3: Any = None
        self._client: Any = None

    @property
    def uri(self) -> str:
        return self.store.uri

    def qualify(self, path: str) -> str:
        return str(StorePath.parse(path))

    @staticmethod
    def location(path: str) -> StorePath:
        return StorePath.parse(path)

    async def status(self, path: str) -> FileStatus | None:
        """
        A file if there is an object with the key, a directory if there is
        anything under ``key/``, else None.
        """
        location = self.location(path)
        key = location.key
        if not key:
            return FileStatus(path, 0, True)
        if not key.endswith("/"):
            try:
                head = await Invoker.once(
                    "head", path, lambda: self.s3.head_object(Bucket=location.bucket, Key=key)
                )
                return FileStatus(path, head.get("ContentLength", 0), False)
            except StoreNotFoundError:
                pass
        pages = await list_objects(self.s3, location.bucket, key.rstrip("/") + "/", max_keys=1)
        page = await pages.next()
        if page.get("Contents") or page.get("CommonPrefixes"):
            return FileStatus(path, 0, True)
        return None

    async def list_files(self, path: str) -> list[FileStatus]:
        """Every object under ``path`` except directory markers."""
        status = await self.status(path)
        if status is None:
            raise StoreNotFoundError(f"No such file or directory: {path}")
        if not status.is_dir:
            return [status]
        location = self.location(path)
        prefix = location.key.rstrip("/") + "/" if location.key else ""
        pages = await list_objects(self.s3, location.bucket, prefix)
        files = []
        async for entry in page_entries(pages, "Contents"):
            size = entry.get("Size", 0)
            if object_represents_directory(entry["Key"], size):
                continue
            files.append(FileStatus(str(location.with_key(entry["Key"])), size))
        return files

    def relative(self, base: str, path: str) -> str:
        base_key = self.location(base).key.rstrip("/")
        key = self.location(path).key
        if not base_key:
            return key
        if key == base_key:
            return ""
        return key[len(base_key) + 1 :]

    def join(self, base: str, relative: str) -> str:
        return str(self.location(base).child(relative))

    def name(self, path: str) -> str:
        return self.location(path).name

    async def __aenter__(self) -> "S3FileSystem":
        self._client = self.store.client()
        self.s3 = await self._client.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        client, self._client, self.s3 = self._client, None, None
        if client is not None:
            await client.__aexit__(exc_type, exc_val, exc_tb)

    def __str__(self) -> str:
        return f"S3FileSystem{{{self.store}}}"


FileSystem = LocalFileSystem | S3FileSystem


def _local_copy(source: str, dest: str) -> None:
    Path(dest).parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, dest)


async def copy_file(
    source_fs: FileSystem,
    source: str,
    dest_fs: FileSystem,
    dest: str,
) -> None:
    """
    Copy one file between any two filesystems.

    S3 uploads, downloads and copies use the SDK's managed transfers, which
    switch to multipart for large files.
    """
    if isinstance(source_fs, LocalFileSystem) and isinstance(dest_fs, LocalFileSystem):
        await asyncio.to_thread(_local_copy, source, dest)
    elif isinstance(source_fs, LocalFileSystem):
        target = dest_fs.location(dest)
        await Invoker.once(
            "upload",
            dest,
            lambda: dest_fs.s3.upload_file(source, target.bucket, target.key),
        )
    elif isinstance(dest_fs, LocalFileSystem):
        origin = source_fs.location(source)
        await asyncio.to_thread(Path(dest).parent.mkdir, parents=True, exist_ok=True)
        await Invoker.once(
            "download",
            source,
            lambda: source_fs.s3.download_file(origin.bucket, origin.key, dest),
        )
    else:
        origin = source_fs.location(source)
        target = dest_fs.location(dest)
        await Invoker.once(
            "copy",
            source,
            lambda: dest_fs.s3.copy(
                {"Bucket": origin.bucket, "Key": origin.key}, target.bucket, target.key
            ),
        )
