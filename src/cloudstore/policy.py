"""Pydantic models for IAM policies.

This module defines the policy document model and the rules an s3a client
needs for a bucket at each access level.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

POLICY_VERSION = "2012-10-17"

S3_BUCKET_READ_OPERATIONS = [
    "s3:GetBucketLocation",
    "s3:ListBucket",
    "s3:ListBucketVersions",
    "s3:ListBucketMultipartUploads",
]

S3_PATH_READ_OPERATIONS = [
    "s3:GetObject",
    "s3:GetObjectVersion",
]

S3_PATH_WRITE_OPERATIONS = [
    "s3:PutObject",
    "s3:DeleteObject",
    "s3:DeleteObjectVersion",
    "s3:AbortMultipartUpload",
    "s3:ListMultipartUploadParts",
]

S3_BUCKET_ADMIN_OPERATIONS = [
    "s3:GetBucketVersioning",
    "s3:PutBucketVersioning",
    "s3:GetLifecycleConfiguration",
    "s3:PutLifecycleConfiguration",
]

KMS_OPERATIONS = [
    "kms:Decrypt",
    "kms:GenerateDataKey",
]


class AccessLevel(str, Enum):
    """Access levels a policy can grant."""

    READ = "read"
    WRITE = "write"
    ADMIN = "admin"


class Effect(str, Enum):
    ALLOW = "Allow"
    DENY = "Deny"


class Statement(BaseModel):
    """One statement of a policy."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, use_enum_values=True)

    sid: str | None = Field(default=None, alias="Sid", description="Statement id")
    effect: Effect = Field(default=Effect.ALLOW, alias="Effect", description="Allow or Deny")
    action: list[str] = Field(..., alias="Action", description="Permitted operations")
    resource: list[str] = Field(..., alias="Resource", description="Resource ARNs")

    @field_validator("action", "resource", mode="before")
    @classmethod
    def listify(cls, value):
        """A single string is a list of one."""
        return [value] if isinstance(value, str) else value


class Policy(BaseModel):
    """An IAM policy document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str = Field(default=POLICY_VERSION, alias="Version")
    statement: list[Statement] = Field(default_factory=list, alias="Statement")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def bucket_arn(bucket: str) -> str:
    return f"arn:aws:s3:::{bucket}"


def bucket_objects_arn(bucket: str, prefix: str = "") -> str:
    return f"arn:aws:s3:::{bucket}/{prefix}*"


def policy_rules(bucket: str, access: set[AccessLevel]) -> list[Statement]:
    """The statements needed to work with a bucket at the given access levels."""
    statements = [
        Statement(sid="BucketRead", action=S3_BUCKET_READ_OPERATIONS, resource=[bucket_arn(bucket)]),
    ]
    object_operations = list(S3_PATH_READ_OPERATIONS)
    if AccessLevel.WRITE in access:
        object_operations += S3_PATH_WRITE_OPERATIONS
    statements.append(
        Statement(sid="ObjectAccess", action=object_operations, resource=[bucket_objects_arn(bucket)])
    )
    if AccessLevel.ADMIN in access:
        statements.append(
            Statement(sid="BucketAdmin", action=S3_BUCKET_ADMIN_OPERATIONS, resource=[bucket_arn(bucket)])
        )
    statements.append(Statement(sid="KMS", action=KMS_OPERATIONS, resource=["*"]))
    return statements
