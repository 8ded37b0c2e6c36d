"""
Tests for the shared command behaviour: option parsing, configuration and
exit code mapping
"""

from datetime import datetime, timezone

import pytest

from cloudstore.config import StoreConfiguration
from cloudstore.duration import MinMeanMax, StoreDurationInfo
from cloudstore.entry_point import (
    AGE,
    LIMIT,
    SINCE,
    StoreEntryPoint,
    exit_on_throwable,
    optusage,
)
from cloudstore.exceptions import ExitCode, StoreExitError, StoreNotFoundError, UsageError

from conftest import client_error


class SampleCommand(StoreEntryPoint):
    NAME = "sample"
    USAGE = "Usage: sample <path>"

    def __init__(self, out=None, err=None):
        super().__init__(out, err)
        self.create_command_format(1, 2)
        self.add_flags("q")
        self.add_value_options(LIMIT, AGE, SINCE)
        self.seen = None

    async def run(self, argv):
        self.seen = self.process_args(argv)
        return ExitCode.SUCCESS


class FailingCommand(StoreEntryPoint):
    error: BaseException = RuntimeError("boom")

    async def run(self, argv):
        raise self.error


@pytest.fixture
def command(output, errors):
    return SampleCommand(output, errors)


class TestOptionParsing:
    """Test Hadoop-style single dash options"""

    def test_options_between_arguments(self, command):
        args = command.process_args(["s3a://b/a", "-limit", "10", "-q", "s3a://b/c"])
        assert args == ["s3a://b/a", "s3a://b/c"]
        assert command.get_int_option(LIMIT, 0) == 10
        assert command.has_option("q")
        assert not command.is_verbose()

    def test_repeated_defines(self, command):
        command.process_args(["-D", "a=1", "-D", "b", "path"])
        conf = command.create_preconfigured_config()
        assert conf.get("a") == "1"
        assert conf.get("b") == "true"
        assert conf.get_property_sources("a") == ["command line"]

    def test_too_few_arguments(self, command, errors):
        with pytest.raises(UsageError):
            command.process_args([])
        assert "Usage: sample" in errors.getvalue()

    def test_too_many_arguments(self, command):
        with pytest.raises(UsageError):
            command.process_args(["a", "b", "c"])

    def test_unknown_option(self, command, errors):
        with pytest.raises(UsageError):
            command.process_args(["-nosuch", "path"])
        assert "Usage: sample" in errors.getvalue()

    def test_integer_option_not_a_number(self, command):
        command.process_args(["-limit", "ten", "path"])
        with pytest.raises(UsageError):
            command.get_int_option(LIMIT, 0)

    def test_optusage(self):
        assert optusage("q", text="quiet") == "\t-q\tquiet\n"
        assert optusage("limit", "n", "limit") == "\t-limit <n>\tlimit\n"


class TestAgeLimit:
    """Test -age and -since"""

    def test_default_is_epoch(self, command):
        command.process_args(["path"])
        assert command.get_age_limit() == datetime.fromtimestamp(0, timezone.utc)

    def test_since(self, command):
        command.process_args(["path", "-since", "1700000000"])
        assert command.get_age_limit() == datetime.fromtimestamp(1700000000, timezone.utc)

    def test_age(self, command):
        command.process_args(["path", "-age", "3600"])
        limit = command.get_age_limit()
        delta = datetime.now(timezone.utc) - limit
        assert 3590 < delta.total_seconds() < 3610

    def test_age_and_since_conflict(self, command):
        command.process_args(["path", "-age", "60", "-since", "1700000000"])
        with pytest.raises(UsageError):
            command.get_age_limit()


class TestConfiguration:
    """Test the configuration sources"""

    def test_xmlfile(self, command, tmp_path):
        xml = tmp_path / "extra.xml"
        xml.write_text(
            "<configuration><property><name>fs.s3a.endpoint</name>"
            "<value>localhost</value></property></configuration>"
        )
        command.process_args(["-xmlfile", str(xml), "path"])
        conf = command.create_preconfigured_config()
        assert conf.get("fs.s3a.endpoint") == "localhost"

    def test_missing_xmlfile(self, command, tmp_path):
        command.process_args(["-xmlfile", str(tmp_path / "nope.xml"), "path"])
        with pytest.raises(StoreNotFoundError):
            command.create_preconfigured_config()

    def test_print_option_masks_secrets(self, command, output):
        conf = StoreConfiguration()
        conf.set("fs.s3a.secret.key", "abcdefghijklmnop", "core-site.xml")
        conf.set("fs.s3a.endpoint", "localhost", "core-site.xml")
        command.print_option(conf, 1, "fs.s3a.secret.key", True, True)
        command.print_option(conf, 2, "fs.s3a.endpoint", False, False)
        command.print_option(conf, 3, "fs.s3a.proxy.host", False, False)
        lines = output.getvalue().splitlines()
        assert lines[0] == '[001]  fs.s3a.secret.key = "ab**********mnop" [16] [core-site.xml]'
        assert lines[1] == '[002]  fs.s3a.endpoint = "localhost" [core-site.xml]'
        assert lines[2] == "[003]  fs.s3a.proxy.host = (unset)"

    def test_print_option_final(self, command, output, tmp_path):
        xml = tmp_path / "final.xml"
        xml.write_text(
            "<configuration><property><name>fs.s3a.endpoint</name>"
            "<value>localhost</value><final>true</final></property></configuration>"
        )
        conf = StoreConfiguration()
        conf.add_resource(xml)
        command.print_option(conf, 1, "fs.s3a.endpoint", False, False)
        assert output.getvalue().rstrip().endswith("[final]")


class TestOutput:
    def test_heading(self, command, output):
        command.heading("Hello %s", "world")
        assert output.getvalue() == "\nHello world\n===========\n\n"

    def test_summarize(self, command, output):
        tracker = StoreDurationInfo()
        tracker.finished()
        stats = MinMeanMax("files")
        stats.add(1000)
        command.summarize("Upload", tracker, 8 * 1024 * 1024, "Files", stats)
        text = output.getvalue()
        assert "Upload Summary" in text
        assert "Data size 8,388,608 bytes" in text
        assert "Upload bandwidth in Megabytes/second 8.000 MB/s" in text
        assert "Files 1: min 1.000 seconds" in text

    def test_output_stream_file(self, command, tmp_path):
        target = tmp_path / "out.txt"
        with command.output_stream(str(target)) as out:
            out.write("data")
        assert target.read_text() == "data"


class TestExitCodes:
    """Test mapping failures onto exit codes"""

    def test_usage_error(self):
        assert exit_on_throwable(UsageError("bad")) == 42

    def test_store_error(self):
        assert exit_on_throwable(StoreNotFoundError("missing")) == 44

    def test_system_exit(self):
        assert exit_on_throwable(SystemExit(3)) == 3

    def test_unexpected(self, capsys):
        assert exit_on_throwable(RuntimeError("boom")) == ExitCode.ERROR
        assert "RuntimeError: boom" in capsys.readouterr().err

    def test_main_success(self):
        assert SampleCommand.main(["path"]) == 0

    def test_main_usage(self):
        assert SampleCommand.main([]) == 42

    def test_main_store_failure(self, monkeypatch):
        monkeypatch.setattr(FailingCommand, "error", StoreExitError("failed"))
        assert FailingCommand.main([]) == ExitCode.EXCEPTION_THROWN

    def test_main_unexpected_failure(self, monkeypatch):
        monkeypatch.setattr(FailingCommand, "error", client_error("AccessDenied"))
        assert FailingCommand.main([]) == ExitCode.ERROR

    def test_exec_raises(self):
        with pytest.raises(RuntimeError):
            FailingCommand.exec()

