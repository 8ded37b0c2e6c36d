"""
cloudstore - Diagnostics and maintenance tools for S3 object stores

Each command is a small program addressed through ``s3a://bucket/path``
URIs; ``cloudstore <command> ...`` runs one.
"""

__version__ = "1.1.0"

from cloudstore.exceptions import (  # noqa: E402
    ExitCode,
    StoreExitError,
    UsageError,
)

__all__ = [
    "__version__",
    "ExitCode",
    "StoreExitError",
    "UsageError",
]
