"""
cloudstore/config.py - Hadoop-style configuration for the s3a tools

Options use the ``fs.s3a.*`` names of the Hadoop S3A connector so existing
``core-site.xml`` files and ``-D`` definitions keep working. Every value
remembers where it came from so diagnostics can print its origin.
"""

import json
import logging
import os
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

from botocore.config import Config
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from cloudstore.exceptions import InvalidArgumentError, StoreNotFoundError

logger = logging.getLogger(__name__)

FS_S3A_PREFIX = "fs.s3a."
FS_S3A_BUCKET_PREFIX = "fs.s3a.bucket."

ACCESS_KEY = "fs.s3a.access.key"
SECRET_KEY = "fs.s3a.secret.key"
SESSION_TOKEN = "fs.s3a.session.token"
AWS_CREDENTIALS_PROVIDER = "fs.s3a.aws.credentials.provider"
ENDPOINT = "fs.s3a.endpoint"
ENDPOINT_REGION = "fs.s3a.endpoint.region"
PATH_STYLE_ACCESS = "fs.s3a.path.style.access"
SSL_ENABLED = "fs.s3a.connection.ssl.enabled"
MAX_ATTEMPTS = "fs.s3a.attempts.maximum"
CONNECTION_MAXIMUM = "fs.s3a.connection.maximum"
CONNECTION_TIMEOUT = "fs.s3a.connection.timeout"
ESTABLISH_TIMEOUT = "fs.s3a.connection.establish.timeout"
BULK_DELETE_PAGE_SIZE = "fs.s3a.bulk.delete.page.size"
ASSUMED_ROLE_ARN = "fs.s3a.assumed.role.arn"
ASSUMED_ROLE_SESSION_NAME = "fs.s3a.assumed.role.session.name"
ASSUMED_ROLE_SESSION_DURATION = "fs.s3a.assumed.role.session.duration"
ASSUMED_ROLE_STS_ENDPOINT = "fs.s3a.assumed.role.sts.endpoint"
ASSUMED_ROLE_STS_REGION = "fs.s3a.assumed.role.sts.endpoint.region"
METADATASTORE_IMPL = "fs.s3a.metadatastore.impl"
S3GUARD_DDB_TABLE = "fs.s3a.s3guard.ddb.table"
S3GUARD_DDB_REGION = "fs.s3a.s3guard.ddb.region"

TEMPORARY_CREDENTIALS_PROVIDER = "org.apache.hadoop.fs.s3a.TemporaryAWSCredentialsProvider"
DYNAMO_METADATASTORE = "org.apache.hadoop.fs.s3a.s3guard.DynamoDBMetadataStore"

DEFAULT_BULK_DELETE_PAGE_SIZE = 1000

# environment variable -> option; applied only when the option is unset
ENVIRONMENT_OPTIONS = {
    "AWS_ACCESS_KEY_ID": ACCESS_KEY,
    "AWS_SECRET_ACCESS_KEY": SECRET_KEY,
    "AWS_SESSION_TOKEN": SESSION_TOKEN,
    "AWS_ENDPOINT_URL_S3": ENDPOINT,
    "AWS_REGION": ENDPOINT_REGION,
}

DEFAULT_RESOURCES = ("core-default.xml", "core-site.xml", "hdfs-site.xml")

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*(ns|us|ms|s|m|h|d)?\s*$")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "ms": 1e-3,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}


class StoreConfiguration:
    """
    Ordered key/value configuration with per-key origins and final keys.
    """

    def __init__(self, other: "StoreConfiguration | None" = None):
        self._values: dict[str, str] = {}
        self._sources: dict[str, list[str]] = {}
        self._final: set[str] = set()
        if other is not None:
            self._values.update(other._values)
            self._sources.update({k: list(v) for k, v in other._sources.items()})
            self._final.update(other._final)

    def set(self, key: str, value: str, source: str = "programmatically") -> None:
        if key in self._final:
            logger.warning("Ignoring attempt to override final parameter %s", key)
            return
        self._values[key] = str(value)
        self._sources[key] = [source]

    def unset(self, key: str) -> None:
        self._values.pop(key, None)
        self._sources.pop(key, None)

    def get(self, key: str, default: str | None = None) -> str | None:
        value = self._values.get(key)
        return value.strip() if value is not None else default

    def get_password(self, key: str) -> str | None:
        """Secrets come from the same table; kept separate for callers."""
        return self.get(key)

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError as e:
            raise InvalidArgumentError(f"Option {key} is not an integer: {value}") from e

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key)
        if value is None or value == "":
            return default
        return value.lower() == "true"

    def get_time_seconds(self, key: str, default: float, default_unit: str = "ms") -> float:
        """Read a duration such as ``200000``, ``60s`` or ``5m`` in seconds."""
        value = self.get(key)
        if value is None or value == "":
            return default
        match = _DURATION_PATTERN.match(value)
        if not match:
            raise InvalidArgumentError(f"Option {key} is not a duration: {value}")
        number, unit = match.groups()
        return int(number) * _DURATION_UNITS[unit or default_unit]

    def get_property_sources(self, key: str) -> list[str]:
        return list(self._sources.get(key, []))

    def is_final(self, key: str) -> bool:
        return key in self._final

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def keys(self) -> list[str]:
        return sorted(self._values)

    def add_resource(self, path: str | Path) -> None:
        """Load a Hadoop XML configuration file."""
        path = Path(path)
        if not path.exists():
            raise StoreNotFoundError(f"Configuration file not found: {path}")
        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as e:
            raise InvalidArgumentError(f"Unable to parse {path}: {e}") from e
        for prop in root.iter("property"):
            name = prop.findtext("name")
            if not name:
                continue
            value = prop.findtext("value") or ""
            self.set(name.strip(), value, str(path))
            if (prop.findtext("final") or "").strip().lower() == "true":
                self._final.add(name.strip())
        logger.debug("Loaded configuration from %s", path)

    def add_default_resources(self, conf_dir: str | None = None) -> None:
        """Load the standard site files from $HADOOP_CONF_DIR if present."""
        conf_dir = conf_dir or os.environ.get("HADOOP_CONF_DIR")
        if not conf_dir:
            return
        for name in DEFAULT_RESOURCES:
            candidate = Path(conf_dir) / name
            if candidate.exists():
                self.add_resource(candidate)

    def load_environment(self, env_file: str | Path | None = None) -> None:
        """Apply AWS environment variables (after loading any .env file)."""
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()
        for env_var, key in ENVIRONMENT_OPTIONS.items():
            value = os.environ.get(env_var)
            if value and key not in self:
                self.set(key, value, f"env:{env_var}")

    def add_token_file(self, path: str | Path) -> int:
        """
        Load credentials saved by ``fetchtokens``.

        Each token becomes a set of per-bucket options. Returns the number
        of tokens loaded.
        """
        path = Path(path)
        if not path.exists():
            raise StoreNotFoundError(f"Token file not found: {path}")
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        tokens = data.get("tokens", [])
        for token in tokens:
            bucket = token["bucket"]
            source = f"tokenfile:{path}"
            self.set(bucket_key(bucket, ACCESS_KEY), token["access_key"], source)
            self.set(bucket_key(bucket, SECRET_KEY), token["secret_key"], source)
            self.set(bucket_key(bucket, SESSION_TOKEN), token["session_token"], source)
            self.set(
                bucket_key(bucket, AWS_CREDENTIALS_PROVIDER),
                TEMPORARY_CREDENTIALS_PROVIDER,
                source,
            )
        return len(tokens)

    def for_bucket(self, bucket: str) -> "StoreConfiguration":
        """
        Copy with ``fs.s3a.bucket.<bucket>.x`` options promoted to ``fs.s3a.x``.
        """
        conf = StoreConfiguration(self)
        prefix = f"{FS_S3A_BUCKET_PREFIX}{bucket}."
        for key in self.keys():
            if not key.startswith(prefix):
                continue
            stripped = key[len(prefix) :]
            if stripped.startswith("bucket."):
                continue
            generic = FS_S3A_PREFIX + stripped
            # per-bucket values win even over final generic ones
            conf._values[generic] = self._values[key]
            conf._sources[generic] = [*self.get_property_sources(key), key]
        return conf


def bucket_key(bucket: str, key: str) -> str:
    """``fs.s3a.x`` -> ``fs.s3a.bucket.<bucket>.x``; empty bucket keeps the key."""
    if not bucket:
        return key
    return f"{FS_S3A_BUCKET_PREFIX}{bucket}.{key[len(FS_S3A_PREFIX):]}"


class S3ClientSettings(BaseModel):
    """Connection settings for one bucket, derived from the configuration."""

    model_config = ConfigDict(frozen=True)

    bucket: str = Field(default="", description="Bucket the settings apply to")
    access_key: str | None = Field(default=None, description="AWS access key id")
    secret_key: str | None = Field(default=None, description="AWS secret key")
    session_token: str | None = Field(default=None, description="AWS session token")
    endpoint: str | None = Field(default=None, description="Endpoint URL or host")
    region: str | None = Field(default=None, description="Signing region")
    path_style_access: bool = Field(default=False, description="Path-style URLs")
    ssl_enabled: bool = Field(default=True, description="Use https")
    max_attempts: int = Field(default=5, ge=1, description="SDK retry attempts")
    max_connections: int = Field(default=96, ge=1, description="Connection pool size")
    connect_timeout: float = Field(default=5.0, gt=0, description="Seconds")
    read_timeout: float = Field(default=200.0, gt=0, description="Seconds")

    @classmethod
    def from_configuration(cls, conf: StoreConfiguration, bucket: str = "") -> "S3ClientSettings":
        conf = conf.for_bucket(bucket) if bucket else conf
        return cls(
            bucket=bucket,
            access_key=conf.get_password(ACCESS_KEY) or None,
            secret_key=conf.get_password(SECRET_KEY) or None,
            session_token=conf.get_password(SESSION_TOKEN) or None,
            endpoint=conf.get(ENDPOINT) or None,
            region=conf.get(ENDPOINT_REGION) or None,
            path_style_access=conf.get_bool(PATH_STYLE_ACCESS, False),
            ssl_enabled=conf.get_bool(SSL_ENABLED, True),
            max_attempts=conf.get_int(MAX_ATTEMPTS, 5),
            max_connections=conf.get_int(CONNECTION_MAXIMUM, 96),
            connect_timeout=conf.get_time_seconds(ESTABLISH_TIMEOUT, 5.0),
            read_timeout=conf.get_time_seconds(CONNECTION_TIMEOUT, 200.0),
        )

    @property
    def has_session_credentials(self) -> bool:
        return bool(self.access_key and self.secret_key and self.session_token)

    def endpoint_url(self) -> str | None:
        if not self.endpoint:
            return None
        if "://" in self.endpoint:
            return self.endpoint
        scheme = "https" if self.ssl_enabled else "http"
        return f"{scheme}://{self.endpoint}"

    def session_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self.access_key and self.secret_key:
            kwargs["aws_access_key_id"] = self.access_key
            kwargs["aws_secret_access_key"] = self.secret_key
            if self.session_token:
                kwargs["aws_session_token"] = self.session_token
        if self.region:
            kwargs["region_name"] = self.region
        return kwargs

    def client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "config": Config(
                s3={"addressing_style": "path" if self.path_style_access else "auto"},
                retries={"max_attempts": self.max_attempts, "mode": "standard"},
                max_pool_connections=self.max_connections,
                connect_timeout=self.connect_timeout,
                read_timeout=self.read_timeout,
            )
        }
        endpoint_url = self.endpoint_url()
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        if self.region:
            kwargs["region_name"] = self.region
        return kwargs
