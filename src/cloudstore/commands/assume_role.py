"""
cloudstore/commands/assume_role.py - Assume a role and emit the credentials
as configuration properties
"""

from pathlib import Path

from cloudstore.config import (
    ACCESS_KEY,
    AWS_CREDENTIALS_PROVIDER,
    SECRET_KEY,
    SESSION_TOKEN,
    TEMPORARY_CREDENTIALS_PROVIDER,
    bucket_key,
)
from cloudstore.credentials import request_session_credentials
from cloudstore.entry_point import StoreEntryPoint
from cloudstore.exceptions import ExitCode
from cloudstore.store import S3Store

PROPERTY_FORMAT = "<property><name>%s</name><value>%s</value></property>"

ROLE_DURATION_SECONDS = 900
# placeholder bucket whose options supply the parent credentials
PARENT_BUCKET = "foobar"


class AssumeRole(StoreEntryPoint):
    NAME = "assumerole"
    USAGE = "Usage: assumerole <roleArn> [bucket] [filename]"

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 3)

    async def assume_role(self, role_arn: str, bucket: str) -> dict[str, str]:
        """The four options which bind ``bucket`` (or every bucket) to the role."""
        conf = self.create_preconfigured_config()
        store = S3Store(conf, bucket or PARENT_BUCKET)
        credentials = await request_session_credentials(
            store, role_arn, session_name="session", duration=ROLE_DURATION_SECONDS
        )
        return {
            bucket_key(bucket, ACCESS_KEY): credentials.access_key,
            bucket_key(bucket, SECRET_KEY): credentials.secret_key,
            bucket_key(bucket, SESSION_TOKEN): credentials.session_token,
            bucket_key(bucket, AWS_CREDENTIALS_PROVIDER): TEMPORARY_CREDENTIALS_PROVIDER,
        }

    async def run(self, argv: list[str]) -> int:
        params = self.process_args(argv)
        role = params[0]
        bucket = params[1] if len(params) > 1 else ""
        destfile = params[2] if len(params) > 2 else ""
        properties = await self.assume_role(role, bucket)
        lines = [PROPERTY_FORMAT % (k, properties[k]) for k in sorted(properties)]
        if destfile:
            path = Path(destfile).absolute()
            self.println("Saving credentials to property file %s", path)
            path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        else:
            for line in lines:
                self.println(line)
        return ExitCode.SUCCESS
