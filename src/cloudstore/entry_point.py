"""
cloudstore/entry_point.py - Base class for every command

Commands parse Hadoop-style single-dash options (``-limit 10``,
``-D key=value``), build a configuration from the standard sources, print
their results to a redirectable output stream and report failures through
exit codes.
"""

import argparse
import asyncio
import logging
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, TextIO

from cloudstore.config import StoreConfiguration
from cloudstore.duration import MinMeanMax, StoreDurationInfo
from cloudstore.exceptions import (
    ExitCode,
    InvalidArgumentError,
    StoreExitError,
    StoreNotFoundError,
    UsageError,
)
from cloudstore.paths import StorePath
from cloudstore.store import S3Store
from cloudstore.utils import sanitize, split

logger = logging.getLogger(__name__)

MB_1 = 1024 * 1024

DEFINE = "D"
TOKENFILE = "tokenfile"
XMLFILE = "xmlfile"
VERBOSE = "verbose"
DEBUG = "debug"
LIMIT = "limit"
AGE = "age"
SINCE = "since"

CLOUD_CONNECTOR_LOGS = ("cloudstore", "aioboto3", "aiobotocore", "boto3", "botocore")

STANDARD_OPTS = (
    "\t-D <key=value>\tDefine a property\n"
    "\t-tokenfile <file>\tToken file to load\n"
    "\t-xmlfile <file>\tXML config file to load\n"
    "\t-verbose\tprint verbose output\n"
    "\t-debug\tenable debug logging\n"
)


def optusage(opt: str, second: str | None = None, text: str = "") -> str:
    if second is None:
        return f"\t-{opt}\t{text}\n"
    return f"\t-{opt} <{second}>\t{text}\n"


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class CommandArgumentParser(argparse.ArgumentParser):
    """An ArgumentParser which raises UsageError instead of exiting."""

    def error(self, message: str):
        raise UsageError(message)


class StoreEntryPoint:
    """
    Shared behaviour of all commands.

    Subclasses declare their options in ``__init__`` with add_flags() and
    add_value_options(), then implement ``async run(argv) -> int``.
    """

    NAME = "store"
    USAGE = ""

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None):
        self.out: TextIO = out if out is not None else sys.stdout
        self.err: TextIO = err if err is not None else sys.stderr
        self.conf = StoreConfiguration()
        self.hide_all_sensitive_chars = False
        self.options: argparse.Namespace | None = None
        self.min_args = 0
        self.max_args = -1
        self.parser = CommandArgumentParser(
            prog=self.NAME,
            add_help=False,
            allow_abbrev=False,
        )
        self.parser.add_argument("args", nargs="*")
        self.parser.add_argument(f"-{DEFINE}", dest=DEFINE, action="append", default=[])
        self.add_value_options(TOKENFILE, XMLFILE)
        self.add_flags(VERBOSE, DEBUG)

    # ----- command line -----

    def create_command_format(self, min_args: int, max_args: int) -> None:
        self.min_args = min_args
        self.max_args = max_args

    def add_flags(self, *names: str) -> None:
        for name in names:
            self.parser.add_argument(f"-{name}", dest=name, action="store_true")

    def add_value_options(self, *names: str) -> None:
        for name in names:
            self.parser.add_argument(f"-{name}", dest=name, default=None)

    def parse_args(self, argv: list[str]) -> list[str]:
        self.options = self.parser.parse_intermixed_args(argv)
        return list(self.options.args)

    def process_args(
        self,
        argv: list[str],
        min_args: int | None = None,
        max_args: int | None = None,
        usage: str | None = None,
    ) -> list[str]:
        """
        Parse the arguments, checking the number of positional ones.

        Raises:
            UsageError: unknown option or wrong argument count
        """
        min_args = self.min_args if min_args is None else min_args
        max_args = self.max_args if max_args is None else max_args
        usage = usage or self.USAGE
        try:
            parsed = self.parse_args(argv)
        except UsageError:
            self.errorln(usage)
            raise
        if (min_args >= 0 and len(parsed) < min_args) or (max_args >= 0 and len(parsed) > max_args):
            self.errorln(usage)
            for arg in parsed:
                self.errorln("  %s", arg)
            raise UsageError(
                f"invalid argument count: expected between {min_args} and {max_args} "
                f"but got {len(parsed)}"
            )
        self.maybe_enable_debug_logging()
        return parsed

    def has_option(self, name: str) -> bool:
        return bool(getattr(self.options, name, False))

    def get_option(self, name: str, default: str | None = None) -> str | None:
        value = getattr(self.options, name, None)
        return default if value is None else value

    def get_int_option(self, name: str, default: int) -> int:
        value = self.get_option(name)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError as e:
            raise UsageError(f"Option -{name} is not an integer: {value}") from e

    def get_optional_long(self, name: str) -> int | None:
        value = self.get_option(name)
        return None if value is None else self.get_int_option(name, 0)

    def is_verbose(self) -> bool:
        return self.has_option(VERBOSE)

    def get_age_limit(self) -> datetime:
        """
        Combine ``-age`` (seconds back from now) and ``-since`` (epoch
        seconds) into one cutoff; they cannot both be set.
        """
        since = self.get_int_option(SINCE, 0)
        age = self.get_optional_long(AGE)
        if age is not None:
            if since > 0:
                raise UsageError(f"Only one of {AGE} and {SINCE} may be specified")
            return datetime.now(timezone.utc) - timedelta(seconds=age)
        return datetime.fromtimestamp(since, timezone.utc)

    def bind_store(self, conf: StoreConfiguration, path: StorePath) -> S3Store:
        """The store for the bucket of ``path``."""
        store = S3Store.for_path(conf, path)
        self.debug("Bound to %s", store)
        if self.is_verbose():
            self.println("Using store %s", store)
        return store

    def maybe_enable_debug_logging(self) -> None:
        if self.has_option(DEBUG):
            self.println("Enabling debug logging")
            logging.getLogger().setLevel(logging.DEBUG)
            for name in CLOUD_CONNECTOR_LOGS:
                logging.getLogger(name).setLevel(logging.DEBUG)

    # ----- configuration -----

    def maybe_add_xml_file_option(self, conf: StoreConfiguration) -> None:
        xmlfile = self.get_option(XMLFILE)
        if xmlfile is None:
            return
        if not xmlfile:
            raise InvalidArgumentError(
                f"XML file option {XMLFILE} found but no value was provided"
            )
        if not Path(xmlfile).exists():
            raise StoreNotFoundError(f"File not found: {xmlfile}")
        self.println("Adding XML configuration file %s", xmlfile)
        conf.add_resource(xmlfile)

    def maybe_add_tokens(self, conf: StoreConfiguration) -> None:
        tokenfile = self.get_option(TOKENFILE)
        if tokenfile is None:
            return
        self.heading("Adding tokenfile %s", tokenfile)
        count = conf.add_token_file(tokenfile)
        self.println("Loaded %d token(s)", count)

    def maybe_patch_defined(self, conf: StoreConfiguration) -> None:
        for definition in getattr(self.options, DEFINE, None) or []:
            key, value = split(definition, "true")
            self.println('Patching configuration with "%s"="%s"', key, value)
            conf.set(key, value, "command line")

    def create_preconfigured_config(self) -> StoreConfiguration:
        """
        Build the configuration: site XML files, ``-xmlfile``, ``-tokenfile``,
        ``-D`` definitions, then any AWS settings in the environment not
        already set.
        """
        conf = StoreConfiguration(self.conf)
        conf.add_default_resources()
        self.maybe_add_xml_file_option(conf)
        self.maybe_add_tokens(conf)
        self.maybe_patch_defined(conf)
        conf.load_environment()
        return conf

    # ----- output -----

    def print_(self, fmt: str = "", *args: Any) -> None:
        self.out.write(fmt % args if args else fmt)

    def println(self, fmt: str = "", *args: Any) -> None:
        self.print_(fmt, *args)
        self.out.write("\n")
        self.flush()

    def flush(self) -> None:
        self.out.flush()

    def heading(self, fmt: str, *args: Any) -> None:
        text = fmt % args if args else fmt
        self.println("\n%s\n%s\n", text, "=" * len(text))

    def warn(self, fmt: str, *args: Any) -> None:
        self.println("WARNING: " + (fmt % args if args else fmt))

    def errorln(self, fmt: str = "", *args: Any) -> None:
        self.err.write((fmt % args if args else fmt) + "\n")
        self.err.flush()

    def error(self, fmt: str, *args: Any) -> None:
        self.errorln("ERROR: " + fmt, *args)

    def debug(self, fmt: str, *args: Any) -> None:
        logger.debug(fmt, *args)

    @contextmanager
    def output_stream(self, path: str | None) -> Iterator[TextIO]:
        """The ``-out`` file if one was named, else the command's output."""
        if not path:
            yield self.out
            return
        self.println("Saving output to %s", path)
        with open(path, "w", encoding="utf-8") as f:
            yield f

    def maybe_sanitize(self, value: str, obfuscate: bool) -> str:
        return sanitize(value, self.hide_all_sensitive_chars) if obfuscate else f'"{value}"'

    def print_options(
        self,
        title: str,
        conf: StoreConfiguration,
        options: list[tuple[str, bool, bool]],
    ) -> None:
        if options:
            self.heading(title)
            for index, (key, secret, obfuscate) in enumerate(options, start=1):
                self.print_option(conf, index, key, secret, obfuscate)

    def print_option(
        self,
        conf: StoreConfiguration,
        index: int,
        key: str,
        secret: bool,
        obfuscate: bool,
    ) -> None:
        """Print ``[index]  key = value [origins]``, masking secrets."""
        if not key:
            return
        source = ""
        if secret:
            option = conf.get_password(key)
            if option is not None:
                source = "<credentials>"
        else:
            option = conf.get(key)
        if option is None:
            full = "(unset)"
        else:
            full = f"{self.maybe_sanitize(option, obfuscate)} {get_origins(conf, key, source)}"
        if conf.is_final(key):
            full += "[final]"
        self.println("[%03d]  %s = %s", index, key, full)

    def summarize(
        self,
        operation: str,
        tracker: StoreDurationInfo,
        size_bytes: int,
        block_name: str | None = None,
        block_summary: MinMeanMax | None = None,
    ) -> None:
        self.heading("%s Summary", operation)
        self.println("Data size %s bytes", f"{size_bytes:,}")
        self.println("%s duration %s", operation, tracker.duration_string())
        self.println()
        seconds = max(tracker.value() / 1000.0, 1.0)
        megabits_per_second = size_bytes * 8.0 / seconds / MB_1
        self.println(
            "%s bandwidth in Megabits/second %s Mbit/s", operation, f"{megabits_per_second:,.3f}"
        )
        self.println(
            "%s bandwidth in Megabytes/second %s MB/s",
            operation,
            f"{megabits_per_second / 8:,.3f}",
        )
        if block_summary is not None:
            self.println(
                "%s %d: min %.3f seconds, max %.3f seconds, mean %.3f seconds,",
                block_name,
                block_summary.samples(),
                block_summary.min() / 1000.0,
                block_summary.max() / 1000.0,
                block_summary.mean() / 1000.0,
            )
        self.println()

    # ----- lifecycle -----

    async def run(self, argv: list[str]) -> int:
        return ExitCode.SUCCESS

    async def close(self) -> None:
        pass

    async def execute(self, argv: list[str]) -> int:
        try:
            return await self.run(argv)
        finally:
            await self.close()

    @classmethod
    def exec(cls, *args: str) -> int:
        """Run the command to completion; failures are raised."""
        return asyncio.run(cls().execute(list(args)))

    @classmethod
    def main(cls, argv: list[str] | None = None) -> int:
        """Run the command, mapping every failure to an exit code."""
        argv = sys.argv[1:] if argv is None else argv
        try:
            return int(cls.exec(*argv))
        except BaseException as e:  # noqa: BLE001
            return exit_on_throwable(e)


def get_origins(conf: StoreConfiguration, key: str, default: str = "") -> str:
    origins = conf.get_property_sources(key)
    return f"[{','.join(origins)}]" if origins else default


def exit_on_throwable(ex: BaseException) -> int:
    """Report a failure on stderr; return the exit code for it."""
    if isinstance(ex, SystemExit):
        return ex.code if isinstance(ex.code, int) else ExitCode.ERROR
    if isinstance(ex, KeyboardInterrupt):
        logger.warning("Interrupted")
        return ExitCode.ERROR
    if isinstance(ex, UsageError):
        print(str(ex), file=sys.stderr)
        return ExitCode.USAGE
    if isinstance(ex, StoreExitError):
        logger.debug("Command failure", exc_info=ex)
        print(str(ex), file=sys.stderr)
        return int(ex.exit_code)
    traceback.print_exception(type(ex), ex, ex.__traceback__, file=sys.stderr)
    return ExitCode.ERROR
