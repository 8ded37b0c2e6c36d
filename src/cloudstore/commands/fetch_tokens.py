"""
cloudstore/commands/fetch_tokens.py - Collect session credentials for a set
of buckets into a token file usable with ``-tokenfile``
"""

import json
import logging
from pathlib import Path

from cloudstore.credentials import request_session_credentials
from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import StoreEntryPoint, optusage
from cloudstore.exceptions import StoreExitError, StoreNotFoundError
from cloudstore.paths import StorePath
from cloudstore.utils import plural

logger = logging.getLogger(__name__)

REQUIRED = "r"


class FetchTokens(StoreEntryPoint):
    NAME = "fetchtokens"
    USAGE = (
        "Usage: fetchtokens <file> [-r]\n"
        + optusage("xmlfile", "file", "XML config file to load")
        + optusage("verbose", text="verbose output")
        + "-r: require each store to issue a token\n"
        " <url1> ... <url999>\n"
    )

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(2, -1)
        self.add_flags(REQUIRED)

    async def run(self, argv: list[str]) -> int:
        paths = self.process_args(argv)
        conf = self.create_preconfigured_config()
        dest = Path(paths[0]).absolute()
        urls = paths[1:]
        required = self.has_option(REQUIRED)
        self.println(
            "Collecting tokens for %d filesystem%s to %s", len(urls), plural(len(urls)), dest
        )

        tokens = []
        for url in urls:
            path = StorePath.parse(url)
            with StoreDurationInfo(logger, "Fetching tokens for %s", path):
                store = self.bind_store(conf, path)
                try:
                    credentials = await request_session_credentials(store)
                except StoreExitError as e:
                    self.println("No token for %s", path)
                    if required:
                        raise StoreNotFoundError(f"No tokens issued by filesystem {store.uri}") from e
                    logger.debug("No token for %s", path, exc_info=True)
                    continue
            self.println("Fetched token for %s expiring %s", store.uri, credentials.expiration)
            tokens.append(
                {
                    "bucket": path.bucket,
                    "access_key": credentials.access_key,
                    "secret_key": credentials.secret_key,
                    "session_token": credentials.session_token,
                    "expiration": credentials.expiration.isoformat() if credentials.expiration else None,
                }
            )

        count = len(tokens)
        if count == 0:
            self.println("No tokens collected, file %s unchanged", dest)
            return 0
        with StoreDurationInfo(logger, "Saving %d token%s to %s", count, plural(count), dest):
            dest.write_text(json.dumps({"tokens": tokens}, indent=2), encoding="utf-8")
        self.println("Saved %d token%s to %s", count, plural(count), dest)
        return 0
