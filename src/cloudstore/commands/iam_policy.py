"""
cloudstore/commands/iam_policy.py - Print the IAM policy a client needs for a bucket
"""

from cloudstore.entry_point import StoreEntryPoint
from cloudstore.exceptions import ExitCode
from cloudstore.paths import StorePath
from cloudstore.policy import AccessLevel, Policy, policy_rules


class IamPolicy(StoreEntryPoint):
    NAME = "iampolicy"
    USAGE = "Usage: iampolicy <S3A path>"

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 1)

    async def run(self, argv: list[str]) -> int:
        args = self.process_args(argv)
        source = StorePath.parse(args[0])
        access = {AccessLevel.READ, AccessLevel.WRITE, AccessLevel.ADMIN}
        policy = Policy(statement=policy_rules(source.bucket, access))
        self.println(policy.to_json())
        return ExitCode.SUCCESS
