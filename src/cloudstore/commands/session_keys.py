"""
cloudstore/commands/session_keys.py - Print session credentials for a bucket
in every format a client might want them
"""

import logging
from pathlib import Path

from cloudstore.config import (
    ACCESS_KEY,
    AWS_CREDENTIALS_PROVIDER,
    ENDPOINT,
    ENDPOINT_REGION,
    SECRET_KEY,
    SESSION_TOKEN,
    TEMPORARY_CREDENTIALS_PROVIDER,
    bucket_key,
)
from cloudstore.credentials import (
    AWS_ACCESS_KEY_ID,
    AWS_SECRET_ACCESS_KEY,
    AWS_SESSION_TOKEN,
    EnvEntry,
    request_session_credentials,
)
from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import STANDARD_OPTS, StoreEntryPoint, optusage
from cloudstore.exceptions import ExitCode, StoreNotFoundError, UsageError
from cloudstore.paths import StorePath

logger = logging.getLogger(__name__)

JSON = "json"
ROLE = "role"


class SessionKeys(StoreEntryPoint):
    NAME = "sessionkeys"
    USAGE = (
        "Usage: sessionkeys\n"
        + STANDARD_OPTS
        + optusage(ROLE, "arn", "Role to assume")
        + optusage(JSON, "file", "Json file to load (only valid if -role is set")
        + " <S3A path>"
    )

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 1)
        self.add_value_options(ROLE, JSON)

    async def run(self, argv: list[str]) -> int:
        args = self.process_args(argv)
        conf = self.create_preconfigured_config()
        role = self.get_option(ROLE, "")
        json_file = self.get_option(JSON, "")
        policy = None
        if json_file:
            if not role:
                raise UsageError("No -role specified for JSON")
            if not Path(json_file).exists():
                raise StoreNotFoundError(f"File not found: {json_file}")
            policy = Path(json_file).read_text(encoding="utf-8")

        source = StorePath.parse(args[0])
        store = self.bind_store(conf, source)
        with StoreDurationInfo(logger, "requesting %s credentials", "role" if role else "session"):
            credentials = await request_session_credentials(store, role or None, policy)

        bucket = source.bucket
        entries = [
            EnvEntry(ACCESS_KEY, AWS_ACCESS_KEY_ID, credentials.access_key),
            EnvEntry(SECRET_KEY, AWS_SECRET_ACCESS_KEY, credentials.secret_key),
            EnvEntry(SESSION_TOKEN, AWS_SESSION_TOKEN, credentials.session_token),
            EnvEntry(AWS_CREDENTIALS_PROVIDER, "", TEMPORARY_CREDENTIALS_PROVIDER),
        ]
        if store.settings.endpoint:
            entries.append(
                EnvEntry(bucket_key(bucket, ENDPOINT), "", store.settings.endpoint)
            )
        if store.settings.region:
            entries.append(
                EnvEntry(bucket_key(bucket, ENDPOINT_REGION), "AWS_REGION", store.settings.region)
            )
        self.print_entries(entries)
        return ExitCode.SUCCESS

    def print_entries(self, entries: list[EnvEntry]) -> None:
        env_entries = [e for e in entries if e.has_env_var]

        self.heading("XML settings")
        self.println("<configuration>\n\n%s\n</configuration>\n", "".join(e.xml() for e in entries))

        self.heading("Properties")
        self.println("".join(e.property() for e in entries))

        self.heading("CLI Arguments")
        self.println("".join(e.cli_property() for e in entries))

        self.heading("Spark")
        self.println("".join(e.spark() for e in entries))

        self.heading("Bash")
        self.println("".join(e.bash() for e in env_entries))

        self.heading("Fish")
        self.println("".join(e.fish() for e in env_entries))

        self.heading("env")
        self.println("".join(e.env() for e in env_entries))
