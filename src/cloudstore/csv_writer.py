"""
cloudstore/csv_writer.py - Minimal CSV/TSV writer for listing output
"""

from typing import Any, TextIO


class SimpleCsvWriter:
    """
    Write delimited rows column by column.

    Text columns are quoted when ``quote`` is set; numeric and boolean
    columns written through column_l/column_b never are.
    """

    def __init__(
        self,
        out: TextIO,
        separator: str = ",",
        eol: str = "\n",
        quote: bool = True,
        close_output: bool = False,
    ):
        self.out = out
        self.separator = separator
        self.eol = eol
        self.quote = quote
        self.close_output = close_output
        self.is_start_of_line = True

    def _col(self, value: Any, quote_column: bool) -> "SimpleCsvWriter":
        if self.is_start_of_line:
            self.is_start_of_line = False
        else:
            self.out.write(self.separator)
        text = "" if value is None else str(value)
        self.out.write(f'"{text}"' if quote_column else text)
        return self

    def column(self, value: Any) -> "SimpleCsvWriter":
        return self._col(value, self.quote)

    def column_l(self, value: int) -> "SimpleCsvWriter":
        return self._col(int(value), False)

    def column_b(self, value: bool) -> "SimpleCsvWriter":
        return self.column_l(1 if value else 0)

    def columns(self, *values: Any) -> "SimpleCsvWriter":
        for value in values:
            self.column(value)
        return self

    def newline(self) -> "SimpleCsvWriter":
        self.out.write(self.eol)
        self.is_start_of_line = True
        return self

    def flush(self) -> None:
        self.out.flush()

    def close(self) -> None:
        self.flush()
        if self.close_output:
            self.out.close()

    def __enter__(self) -> "SimpleCsvWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
