"""
cloudstore/commands/path_capability.py - Probe a path for a capability
"""

from cloudstore.capabilities import StoreCapabilities
from cloudstore.entry_point import STANDARD_OPTS, StoreEntryPoint
from cloudstore.exceptions import ExitCode
from cloudstore.paths import StorePath


class PathCapability(StoreEntryPoint):
    NAME = "pathcapability"
    USAGE = "Usage: pathcapability [options] <capability> <path>\n" + STANDARD_OPTS

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(2, 2)

    async def run(self, argv: list[str]) -> int:
        args = self.process_args(argv)
        conf = self.create_preconfigured_config()
        capability = args[0]
        path = StorePath.parse(args[1])
        store = self.bind_store(conf, path)
        self.println("Using filesystem %s", store.uri)
        capabilities = StoreCapabilities(store)
        if await capabilities.has_path_capability(path, capability):
            self.println("Path %s has capability %s", path, capability)
            return ExitCode.SUCCESS
        self.println("Path %s lacks capability %s", path, capability)
        return ExitCode.ERROR
