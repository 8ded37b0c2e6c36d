"""
cloudstore/commands/regions.py - Show how the SDK would resolve its region

The providers are consulted in the order the SDK itself uses: environment
variables, the profile in ``~/.aws/config``, then EC2 instance metadata.
"""

import asyncio
import logging
import os
from collections.abc import Callable

import botocore.session
from botocore.utils import InstanceMetadataRegionFetcher

from cloudstore.duration import StoreDurationInfo
from cloudstore.entry_point import StoreEntryPoint
from cloudstore.exceptions import ExitCode

logger = logging.getLogger(__name__)

REGION_ENV_VARS = ("AWS_REGION", "AWS_DEFAULT_REGION")


def environment_region() -> str | None:
    for name in REGION_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


def profile_region() -> str | None:
    session = botocore.session.Session()
    return session.get_scoped_config().get("region")


def instance_metadata_region() -> str | None:
    return InstanceMetadataRegionFetcher(timeout=1, num_attempts=1).retrieve_region()


class Regions(StoreEntryPoint):
    NAME = "regions"
    USAGE = "Usage: regions"

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(0, 0)
        self.found_region: str | None = None
        self.region_provider: str | None = None
        self.providers: list[tuple[str, str, Callable[[], str | None]]] = [
            ("EnvironmentRegionProvider", "Environment variables AWS_REGION or AWS_DEFAULT_REGION", environment_region),
            ("AwsProfileRegionProvider", "Region info in ~/.aws/config", profile_region),
            (
                "InstanceMetadataRegionProvider",
                "EC2 metadata; will only work in AWS infrastructure",
                instance_metadata_region,
            ),
        ]

    async def run(self, argv: list[str]) -> int:
        self.process_args(argv)
        self.heading("Determining AWS region for SDK clients")
        self.println("This uses same region resolution chain and ordering as in the AWS client.")
        for name, comment, provider in self.providers:
            await self.print_region(name, provider, comment)

        if self.found_region is None:
            self.heading("Region was NOT FOUND")
            self.warn("AWS region was not determined through SDK region chain")
            self.warn("This may not work")
            return ExitCode.EXCEPTION_THROWN
        self.heading('Region found: "%s"', self.found_region)
        self.println(
            'Region was determined by %s as  "%s"', self.region_provider, self.found_region
        )
        return ExitCode.SUCCESS

    async def print_region(self, name: str, provider: Callable[[], str | None], comment: str) -> bool:
        self.heading("Determining region using %s", name)
        self.println("%s", comment)
        region = None
        try:
            with StoreDurationInfo(logger, "%s.getRegion()", name):
                region = await asyncio.to_thread(provider)
        except Exception as e:
            self.warn("Provider %s raised an exception %s", name, e)
            logger.info("Provider %s raised an exception", name, exc_info=True)
        if region:
            self.println('Region is determined as "%s"', region)
            if self.found_region is None:
                self.found_region = region
                self.region_provider = name
            return True
        self.println("region is not known")
        return False
