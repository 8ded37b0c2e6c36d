"""
cloudstore.cloudup - Parallel copying of directory trees to, from and
between stores
"""

from cloudstore.cloudup.cloudup import Cloudup
from cloudstore.cloudup.entries import Outcome, UploadEntry, UploadState, plan_uploads

__all__ = ["Cloudup", "Outcome", "UploadEntry", "UploadState", "plan_uploads"]
