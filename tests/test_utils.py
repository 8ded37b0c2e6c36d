"""
Tests for the small shared helpers: masking, argument splitting, CSV output,
timing and path classification
"""

import io
from datetime import datetime, timezone

import pytest

from cloudstore.csv_writer import SimpleCsvWriter
from cloudstore.duration import MinMeanMax, StoreDurationInfo, human_time
from cloudstore.exceptions import InvalidArgumentError, UsageError
from cloudstore.paths import (
    StorePath,
    format_date,
    is_dir_marker,
    is_store_uri,
    object_represents_directory,
    stringify,
)
from cloudstore.utils import (
    byte_count_to_display_size,
    check_argument,
    commas,
    get_data_size,
    plural,
    read_lines,
    sanitize,
    split,
)


class TestSanitize:
    def test_long_value_keeps_ends(self):
        assert sanitize("AKIAABCDEFGHIJKL") == '"AK**********IJKL" [16]'

    def test_short_value_fully_hidden(self):
        assert sanitize("abc") == '"********" [3]'

    def test_hide_everything(self):
        assert sanitize("AKIAABCDEFGHIJKL", hide=True) == '"********" [16]'


class TestSplit:
    def test_key_value(self):
        assert split("fs.s3a.endpoint=localhost", "true") == ("fs.s3a.endpoint", "localhost")

    def test_bare_key_gets_default(self):
        assert split("fs.s3a.path.style.access", "true") == ("fs.s3a.path.style.access", "true")

    @pytest.mark.parametrize("param", ["=value", "key="])
    def test_malformed(self, param):
        with pytest.raises(UsageError):
            split(param, "true")


class TestHelpers:
    def test_read_lines_skips_comments(self, tmp_path):
        path = tmp_path / "list.txt"
        path.write_text("# header\n\nfile1\n  # indented comment\nfile2\n")
        assert read_lines(path) == ["file1", "file2"]

    def test_plural_and_commas(self):
        assert plural(1) == ""
        assert plural(2) == "s"
        assert commas(1234567) == "1,234,567"

    @pytest.mark.parametrize(
        "text,expected",
        [("1024", 1024), ("64K", 65536), ("10MB", 10 * 1024 * 1024), ("1.5g", int(1.5 * 1024**3))],
    )
    def test_get_data_size(self, text, expected):
        assert get_data_size(text) == expected

    def test_display_size(self):
        assert byte_count_to_display_size(12) == "12 bytes"
        assert byte_count_to_display_size(2048) == "2.0 KB"

    def test_check_argument(self):
        check_argument(True, "unused")
        with pytest.raises(InvalidArgumentError):
            check_argument(False, "bad")


class TestSimpleCsvWriter:
    """Test CSV column quoting and separators"""

    def test_quoted_text_unquoted_numbers(self):
        out = io.StringIO()
        csv = SimpleCsvWriter(out, ",", "\n", True)
        csv.column("key").column_l(12).column_b(True).column_b(False).newline()
        assert out.getvalue() == '"key",12,1,0\n'

    def test_tab_separator_unquoted(self):
        out = io.StringIO()
        with SimpleCsvWriter(out, "\t", "\n", False) as csv:
            csv.columns("a", "b").newline()
            csv.column(None).newline()
        assert out.getvalue() == "a\tb\n\n"
        assert not out.closed

    def test_close_output(self):
        out = io.StringIO()
        SimpleCsvWriter(out, close_output=True).close()
        assert out.closed


class TestDuration:
    """Test StoreDurationInfo and MinMeanMax"""

    def test_human_time(self):
        assert human_time(0) == "0:00.000"
        assert human_time(61_005) == "1:01.005"

    def test_finished_freezes_value(self):
        duration = StoreDurationInfo()
        duration.finished()
        first = duration.value()
        duration.finished()
        assert duration.value() == first

    def test_context_manager_prints(self):
        out = io.StringIO()
        with StoreDurationInfo(None, "listing %s", "s3a://bucket/", out=out):
            pass
        text = out.getvalue()
        assert "Starting: listing s3a://bucket/" in text
        assert "Duration of listing s3a://bucket/" in text

    def test_min_mean_max(self):
        stats = MinMeanMax("files")
        assert stats.mean() == 0.0
        for value in (10, 30, 20):
            stats.add(value)
        assert stats.min() == 10
        assert stats.max() == 30
        assert stats.mean() == 20
        assert stats.samples() == 3
        assert stats.sum() == 60


class TestPaths:
    """Test path parsing and object classification"""

    def test_parse(self):
        path = StorePath.parse("s3a://bucket/dir/file")
        assert path.bucket == "bucket"
        assert path.key == "dir/file"
        assert path.name == "file"
        assert not path.is_root
        assert str(path) == "s3a://bucket/dir/file"

    def test_root(self):
        assert StorePath.parse("s3a://bucket").is_root
        assert StorePath.parse("s3a://bucket/").is_root

    def test_child(self):
        assert StorePath.parse("s3a://bucket/dir/").child("a/b").key == "dir/a/b"
        assert StorePath.parse("s3a://bucket").child("a").key == "a"

    @pytest.mark.parametrize("uri", ["/tmp/file", "hdfs://nn/path", "s3a:///nobucket"])
    def test_invalid(self, uri):
        with pytest.raises(UsageError):
            StorePath.parse(uri)

    def test_is_store_uri(self):
        assert is_store_uri("s3://bucket/key")
        assert not is_store_uri("file:///tmp")

    def test_directory_markers(self):
        assert object_represents_directory("dir/", 0)
        assert not object_represents_directory("dir/", 10)
        assert not object_represents_directory("file", 0)
        assert is_dir_marker({"Key": "dir/", "Size": 0})

    def test_stringify(self):
        modified = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert format_date(modified) == "2024-01-02 03:04:05"
        assert format_date(None) == ""
        text = stringify({"Key": "a", "Size": 3, "LastModified": modified, "ETag": "e"})
        assert text == '"a"\tsize: [3]\t2024-01-02 03:04:05\ttag: e'
