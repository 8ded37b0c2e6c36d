"""
cloudstore/credentials.py - Session and assumed-role credentials from STS
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from cloudstore.invoker import Invoker
from cloudstore.store import S3Store

logger = logging.getLogger(__name__)

AWS_ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
AWS_SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"
AWS_SESSION_TOKEN = "AWS_SESSION_TOKEN"

SESSION_DURATION_SECONDS = 36 * 3600
ROLE_DURATION_SECONDS = 12 * 3600


class SessionCredentials(BaseModel):
    """A set of temporary credentials."""

    model_config = ConfigDict(frozen=True)

    access_key: str = Field(..., description="Access key id")
    secret_key: str = Field(..., description="Secret access key")
    session_token: str = Field(..., description="Session token")
    expiration: datetime | None = Field(default=None, description="When they expire")

    @classmethod
    def from_sts(cls, credentials: dict) -> "SessionCredentials":
        return cls(
            access_key=credentials["AccessKeyId"],
            secret_key=credentials["SecretAccessKey"],
            session_token=credentials["SessionToken"],
            expiration=credentials.get("Expiration"),
        )


async def request_session_credentials(
    store: S3Store,
    role: str | None = None,
    policy: str | None = None,
    session_name: str = "role-session",
    duration: int | None = None,
) -> SessionCredentials:
    """
    Get temporary credentials for a store.

    If the store is already configured with session credentials they are
    returned as they are; otherwise STS is asked for a session token, or
    to assume ``role`` (optionally restricted by a JSON ``policy``).
    """
    settings = store.settings
    if role is None and settings.has_session_credentials:
        logger.info("Bucket credentials are already session credentials")
        return SessionCredentials(
            access_key=settings.access_key,
            secret_key=settings.secret_key,
            session_token=settings.session_token,
        )
    async with store.sts_client() as sts:
        if role is None:
            response = await Invoker.once(
                "getSessionToken",
                store.uri,
                lambda: sts.get_session_token(DurationSeconds=duration or SESSION_DURATION_SECONDS),
            )
        else:
            request = {
                "RoleArn": role,
                "RoleSessionName": session_name,
                "DurationSeconds": duration or ROLE_DURATION_SECONDS,
            }
            if policy:
                request["Policy"] = policy
            response = await Invoker.once("assumeRole", role, lambda: sts.assume_role(**request))
    return SessionCredentials.from_sts(response["Credentials"])


@dataclass(frozen=True)
class EnvEntry:
    """One setting rendered in each of the formats tools accept."""

    name: str
    env_var: str
    value: str

    @property
    def has_env_var(self) -> bool:
        return bool(self.env_var)

    def xml(self) -> str:
        return f"<property>\n  <name>{self.name}</name>\n  <value>{self.value}</value>\n</property>\n"

    def property(self) -> str:
        return f"{self.name}={self.value}\n"

    def cli_property(self) -> str:
        return f"-D {self.name}={self.value} "

    def spark(self) -> str:
        return f"spark.hadoop.{self.name} {self.value}\n"

    def bash(self) -> str:
        return f'export {self.env_var}="{self.value}"\n'

    def fish(self) -> str:
        return f'set -gx {self.env_var} "{self.value}";\n'

    def env(self) -> str:
        return f"{self.env_var}={self.value}\n"
