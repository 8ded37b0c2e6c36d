"""
cloudstore/utils.py - Small helpers shared by the commands
"""

import re
from pathlib import Path

from cloudstore.exceptions import InvalidArgumentError, UsageError

HIDE_PREFIX = 2
HIDE_SUFFIX = 4
HIDE_THRESHOLD = HIDE_PREFIX * 2 + HIDE_SUFFIX

_SIZE_UNITS = {
    "": 1,
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
    "T": 1024**4,
    "P": 1024**5,
}

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMGTP]?)B?\s*$", re.IGNORECASE)


def check_argument(condition: bool, text: str) -> None:
    """Raise InvalidArgumentError if the condition does not hold."""
    if not condition:
        raise InvalidArgumentError(text)


def stars(n: int) -> str:
    return "*" * n


def sanitize(value: str, hide: bool = False) -> str:
    """
    Mask a secret for display.

    Long values keep the first two and last four characters; short values,
    or all values when ``hide`` is set, become a fixed row of stars. The
    original length is always appended.

    Args:
        value: Secret to mask
        hide: Hide every character

    Returns:
        The quoted, masked value followed by its length
    """
    length = len(value)
    if not hide and length > HIDE_THRESHOLD:
        safe = (
            value[:HIDE_PREFIX]
            + stars(length - HIDE_PREFIX - HIDE_SUFFIX)
            + value[length - HIDE_SUFFIX :]
        )
    else:
        safe = stars(HIDE_THRESHOLD)
    return f'"{safe}" [{length}]'


def split(param: str, default: str) -> tuple[str, str]:
    """
    Split a ``key=value`` argument.

    A bare ``key`` gets the default value; ``=value`` and ``key=`` are
    usage errors.
    """
    index = param.find("=")
    if index == 0 or index + 1 == len(param):
        raise UsageError(f"Unable to parse argument {param}")
    if index > 0:
        return param[:index], param[index + 1 :]
    return param, default


def read_lines(path: str | Path) -> list[str]:
    """Read a file, skipping blank lines and lines starting with '#'."""
    lines = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            stripped = line.strip()
            if stripped and not stripped.startswith("#"):
                lines.append(line.rstrip("\r\n"))
    return lines


def plural(n: int) -> str:
    return "" if n == 1 else "s"


def commas(n: int) -> str:
    return f"{n:,}"


def get_data_size(size: str) -> int:
    """
    Parse a size such as ``1024``, ``64K``, ``10MB`` or ``1.5g`` into bytes.
    """
    match = _SIZE_PATTERN.match(size)
    if not match:
        raise ValueError(f"Unparseable size: {size!r}")
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[unit.upper()])


def byte_count_to_display_size(size: int) -> str:
    """Render a byte count the way `ls -h` would, e.g. ``12 MB``."""
    if size < 1024:
        return f"{size} bytes"
    value = float(size)
    for unit in ("KB", "MB", "GB"):
        value /= 1024
        if value < 1024:
            return f"{value:.1f} {unit}"
    return f"{value / 1024:.1f} TB"
