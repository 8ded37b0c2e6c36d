"""
cloudstore/commands/s3a_diag.py - Diagnose the configuration and reachability of a bucket

Prints the runtime, library versions and the s3a options (secrets masked,
each with where it was set), then exercises the bucket: list the root and
write, list, read and delete a probe file.
"""

import logging
import os
import platform
import socket
import uuid
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version

from cloudstore import __version__
from cloudstore.capabilities import StoreCapabilities
from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import STANDARD_OPTS, StoreEntryPoint, optusage
from cloudstore.exceptions import ExitCode, StoreExitError
from cloudstore.invoker import Invoker
from cloudstore.listing import list_objects
from cloudstore.paths import StorePath
from cloudstore.store import S3Store
from cloudstore.utils import sanitize

logger = logging.getLogger(__name__)

HELLO = b"Hello"
LIST_LIMIT = 25

HIDE = "h"
WRITE = "w"

LIBRARIES = ("aioboto3", "aiobotocore", "boto3", "botocore", "pydantic", "python-dotenv")

# (option, secret, obfuscate)
S3A_OPTIONS = (
    ("fs.s3a.access.key", True, True),
    ("fs.s3a.secret.key", True, True),
    ("fs.s3a.session.token", True, True),
    ("fs.s3a.server-side-encryption-algorithm", True, False),
    ("fs.s3a.server-side-encryption.key", True, True),
    ("fs.s3a.aws.credentials.provider", False, False),
    ("fs.s3a.endpoint", False, False),
    ("fs.s3a.endpoint.region", False, False),
    ("fs.s3a.path.style.access", False, False),
    ("fs.s3a.connection.ssl.enabled", False, False),
    ("fs.s3a.connection.maximum", False, False),
    ("fs.s3a.connection.establish.timeout", False, False),
    ("fs.s3a.connection.timeout", False, False),
    ("fs.s3a.attempts.maximum", False, False),
    ("fs.s3a.retry.limit", False, False),
    ("fs.s3a.retry.interval", False, False),
    ("fs.s3a.bulk.delete.page.size", False, False),
    ("fs.s3a.directory.marker.retention", False, False),
    ("fs.s3a.multipart.uploads.enabled", False, False),
    ("fs.s3a.proxy.host", False, False),
    ("fs.s3a.proxy.port", False, False),
    ("fs.s3a.proxy.username", False, False),
    ("fs.s3a.proxy.password", True, True),
    ("fs.s3a.assumed.role.arn", False, False),
    ("fs.s3a.assumed.role.sts.endpoint", False, False),
    ("fs.s3a.assumed.role.sts.endpoint.region", False, False),
    ("fs.s3a.assumed.role.session.name", False, False),
    ("fs.s3a.assumed.role.session.duration", False, False),
    ("fs.s3a.metadatastore.impl", False, False),
    ("fs.s3a.s3guard.ddb.table", False, False),
    ("fs.s3a.s3guard.ddb.region", False, False),
)

# (variable, secret)
ENV_VARS = (
    ("AWS_ACCESS_KEY_ID", True),
    ("AWS_SECRET_ACCESS_KEY", True),
    ("AWS_SESSION_TOKEN", True),
    ("AWS_REGION", False),
    ("AWS_DEFAULT_REGION", False),
    ("AWS_PROFILE", False),
    ("AWS_CONFIG_FILE", False),
    ("AWS_SHARED_CREDENTIALS_FILE", False),
    ("AWS_ENDPOINT_URL", False),
    ("AWS_ENDPOINT_URL_S3", False),
    ("AWS_CA_BUNDLE", False),
    ("HADOOP_CONF_DIR", False),
    ("HTTPS_PROXY", False),
    ("NO_PROXY", False),
)


def library_version(name: str) -> str:
    try:
        return version(name)
    except PackageNotFoundError:
        return "(not installed)"


class S3ADiag(StoreEntryPoint):
    """Always attempts the write operations."""

    NAME = "s3adiag"
    USAGE = "Usage: s3adiag [options] <path>\n" + STANDARD_OPTS + optusage(HIDE, text="redact all chars in sensitive options")

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 1)
        self.add_flags(HIDE)

    def write_operations(self) -> bool:
        return True

    async def run(self, argv: list[str]) -> int:
        args = self.process_args(argv)
        self.hide_all_sensitive_chars = self.has_option(HIDE)
        self.heading("Store Diagnostics for %s on %s", os.environ.get("USER", "(unknown)"), socket.gethostname())
        self.println("Collected at %s\n", datetime.now(timezone.utc).isoformat())

        conf = self.create_preconfigured_config()
        path = StorePath.parse(args[0])
        store = self.bind_store(conf, path)

        self.print_versions()
        self.print_env_vars()
        self.print_options("S3A Config Options", store.conf, list(S3A_OPTIONS))
        await self.print_capabilities(store, path)
        completed = await self.execute_store_operations(store, path)
        if completed:
            self.heading("Success!")
            return ExitCode.SUCCESS
        self.heading("Failed to complete store operations")
        return ExitCode.ERROR

    def print_versions(self) -> None:
        self.heading("Versions")
        self.println("cloudstore %s", __version__)
        self.println("Python %s (%s)", platform.python_version(), platform.python_implementation())
        self.println("OS %s", platform.platform())
        for name in LIBRARIES:
            self.println("%s %s", name, library_version(name))

    def print_env_vars(self) -> None:
        self.heading("Environment Variables")
        for index, (name, secret) in enumerate(ENV_VARS, start=1):
            value = os.environ.get(name)
            if value is None:
                shown = "(unset)"
            elif secret:
                shown = sanitize(value, self.hide_all_sensitive_chars)
            else:
                shown = f'"{value}"'
            self.println("[%03d] %s = %s", index, name, shown)

    async def print_capabilities(self, store: S3Store, path: StorePath) -> None:
        self.heading("Path Capabilities")
        capabilities = StoreCapabilities(store)
        for name in capabilities.names():
            try:
                self.println("%s\t%s", name, await capabilities.has_path_capability(path, name))
            except StoreExitError as e:
                self.println("%s\tunknown: %s", name, e)

    async def execute_store_operations(self, store: S3Store, path: StorePath) -> bool:
        base = path.key.rstrip("/") + "/" if path.key else ""
        self.heading("Test store %s", path)
        async with store.client() as s3:
            try:
                with StoreDurationInfo(None, "First %d entries of %s", LIST_LIMIT, path, out=self.out):
                    pages = await list_objects(s3, path.bucket, base, delimiter="/", max_keys=LIST_LIMIT)
                    page = await pages.next()
                    entries = page.get("Contents", []) or []
                    prefixes = page.get("CommonPrefixes", []) or []
                    self.println(
                        "%s has %d entries and %d prefixes", path, len(entries), len(prefixes)
                    )
                    for entry in entries:
                        self.println("  %s\t%d", entry["Key"], entry.get("Size", 0))
            except StoreExitError as e:
                self.println("Failed to list %s: %s", path, e)
                self.println("Possible causes:")
                self.println("  - wrong store/endpoint is being probed; check endpoint")
                self.println("  - the bucket name is mis-spelled")
                self.println("  - the bucket does not exist or has been deleted")
                return False

            if not self.write_operations():
                self.heading("All read operations succeeded: client has read access")
                self.println("Tests are read only; to test write permissions rerun with -%s", WRITE)
                return True

            directory = f"{base}dir-{uuid.uuid4()}/"
            file_key = f"{directory}file"
            self.heading("Store Write Operations")
            try:
                with StoreDurationInfo(None, "Creating a directory %s", directory, out=self.out):
                    await Invoker.once(
                        "put", directory, lambda: s3.put_object(Bucket=path.bucket, Key=directory, Body=b"")
                    )
                with StoreDurationInfo(None, "Creating a file %s", file_key, out=self.out):
                    await Invoker.once(
                        "put", file_key, lambda: s3.put_object(Bucket=path.bucket, Key=file_key, Body=HELLO)
                    )
                with StoreDurationInfo(None, "Listing %s", directory, out=self.out):
                    listing = await list_objects(s3, path.bucket, directory)
                    await listing.next()
                with StoreDurationInfo(None, "Reading a file %s", file_key, out=self.out):
                    response = await Invoker.once(
                        "get", file_key, lambda: s3.get_object(Bucket=path.bucket, Key=file_key)
                    )
                    data = await response["Body"].read()
                    if data != HELLO:
                        self.println(
                            'Expected %s to contain the text %s but it has the text "%s"',
                            file_key,
                            HELLO.decode(),
                            data.decode(errors="replace"),
                        )
                        return False
                with StoreDurationInfo(None, "Deleting file %s", file_key, out=self.out):
                    await Invoker.once(
                        "delete", file_key, lambda: s3.delete_object(Bucket=path.bucket, Key=file_key)
                    )
            finally:
                with StoreDurationInfo(None, "Deleting directory %s", directory, out=self.out):
                    try:
                        await s3.delete_objects(
                            Bucket=path.bucket,
                            Delete={"Objects": [{"Key": file_key}, {"Key": directory}], "Quiet": True},
                        )
                    except Exception as e:
                        logger.warning("When deleting %s: %s", directory, e)
        return True


class StoreDiag(S3ADiag):
    """As s3adiag, but write operations are only attempted with -w."""

    NAME = "storediag"
    USAGE = (
        "Usage: storediag [options] <path>\n"
        + STANDARD_OPTS
        + optusage(HIDE, text="redact all chars in sensitive options")
        + optusage(WRITE, text="attempt write operations on the store")
    )

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.add_flags(WRITE)

    def write_operations(self) -> bool:
        return self.has_option(WRITE)
