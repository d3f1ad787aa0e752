"""Trim over-long decimal values in benchmark output files so results compare cleanly."""

from __future__ import annotations

import os
import re
import stat
from collections.abc import Iterable, Iterator
from typing import TextIO

from pbench import log

IN_PROGRESS_EXT = ".InProgress"
FILE_FORMATS = ("csv", "json")

_DELIMITERS = re.compile("['\",\n]")
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def _next_field(data: str) -> tuple[int, str]:
    """Return how many characters the next field consumes and its trimmed text."""
    in_quote = ""
    pos = 0
    while pos < len(data):
        if in_quote:
            found = data.find(in_quote, pos)
            if found < 0:
                break
            if found == pos or data[found - 1] != "\\":
                in_quote = ""
            pos = found
        else:
            match = _DELIMITERS.search(data, pos)
            if match is None:
                break
            pos = match.start()
            char = data[pos]
            if char in "\"'":
                in_quote = char
            else:
                return pos + 1, data[:pos].strip()
        pos += 1
    if in_quote:
        raise ValueError(f"expecting {in_quote} but got EOF")
    return len(data), data.strip()


def split_fields(text: str) -> list[str]:
    """Split a row on commas and newlines, keeping quoted sections intact.

    Fields are trimmed of whitespace and empty fields are dropped. An unterminated
    quote raises ValueError.
    """
    fields: list[str] = []
    rest = text
    while rest:
        advance, token = _next_field(rest)
        if token:
            fields.append(token)
        rest = rest[advance:]
    return fields


def _extension(path: str) -> str:
    base = os.path.basename(path)
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


class DecimalRounder:
    """Cuts decimals found in the first row's columns down to a fixed precision."""

    def __init__(
        self,
        precision: int = 12,
        file_extensions: Iterable[str] = (".output",),
        file_format: str = "json",
        in_place: bool = False,
        recursive: bool = False,
    ) -> None:
        extensions = tuple(file_extensions)
        for ext in extensions:
            if not ext.startswith("."):
                raise ValueError(
                    f'file extension "{ext}" not accepted, it should start with a dot (.)'
                )
        if file_format not in FILE_FORMATS:
            raise ValueError(
                f'file format "{file_format}" is not an accepted value, '
                'only "json" or "csv" is accepted'
            )
        if precision < 0:
            raise ValueError(f"decimal precision must not be negative, got {precision}")
        self.precision = precision
        self.file_extensions = extensions
        self.file_format = file_format
        self.in_place = in_place
        self.recursive = recursive
        self.files_scanned = 0
        self.files_written = 0
        self._decimal = re.compile(rf'"?(\d+\.\d{{{precision}}})\d+"?', re.ASCII)

    def accepts(self, path: str | os.PathLike[str]) -> bool:
        """Whether the file name carries one of the accepted extensions."""
        if not self.file_extensions:
            return True
        text = os.fspath(path)
        return any(text.endswith(ext) for ext in self.file_extensions)

    def process_path(self, path: str | os.PathLike[str]) -> None:
        """Process a file, or the files of a directory (descending when recursive)."""
        path = os.path.expanduser(os.fspath(path))
        info = os.stat(path)
        if not stat.S_ISDIR(info.st_mode):
            self.process_file(path)
            return
        with os.scandir(path) as scan:
            entries = sorted(scan, key=lambda entry: entry.name)
        for entry in entries:
            full_path = os.path.join(path, entry.name)
            if entry.is_dir(follow_symlinks=False):
                if self.recursive:
                    self.process_path(full_path)
            else:
                self.process_file(full_path)

    def process_file(self, path: str | os.PathLike[str]) -> bool:
        """Rewrite one file; return True when a rewritten file was produced."""
        path = os.fspath(path)
        if not self.accepts(path):
            return False
        output_path = self._output_path(path)
        with open(path, encoding=_ENCODING, errors=_ERRORS, newline="\n") as source:
            self.files_scanned += 1
            rows = self._rows(source, path)
            first = next(rows, None)
            if first is None:
                return False
            try:
                with open(
                    output_path, "w", encoding=_ENCODING, errors=_ERRORS, newline=""
                ) as target:
                    target.write(first)
                    target.writelines(rows)
            except BaseException:
                try:
                    os.remove(output_path)
                except OSError as exc:
                    log.error().field("path", output_path).err(exc).msg(
                        "failed to remove the temporary file"
                    )
                raise
        if not self.in_place:
            log.info().field("path", output_path).msg("file written")
            self.files_written += 1
            return True
        try:
            os.remove(path)
        except OSError as exc:
            raise OSError(f"failed to remove the original file {path}: {exc}") from exc
        try:
            os.rename(output_path, path)
        except OSError as exc:
            raise OSError(f"failed to rename file {output_path} to {path}: {exc}") from exc
        self.files_written += 1
        log.info().field("path", path).msg("file updated")
        return True

    def _output_path(self, path: str) -> str:
        if self.in_place:
            return path + IN_PROGRESS_EXT
        ext = _extension(path)
        return path[: len(path) - len(ext)] + ".rewrite" + ext

    def _shorten(self, match: re.Match[str]) -> str:
        if self.file_format == "csv":
            return f'"{match.group(1)}"'
        return match.group(1)

    def _join(self, cols: list[str]) -> str:
        if self.file_format == "json":
            return "[" + ",".join(cols) + "]\n"
        return ",".join(cols) + "\n"

    def _rows(self, source: TextIO, path: str) -> Iterator[str]:
        decimal_cols: list[int] | None = None
        col_count = 0
        for line_num, line in enumerate(source, start=1):
            text = line.removesuffix("\n").removesuffix("\r")
            if self.file_format == "json":
                text = text.strip("[]")
            try:
                cols = split_fields(text)
            except ValueError as exc:
                raise ValueError(f"{path} line {line_num}: {exc}") from exc
            if decimal_cols is None:
                decimal_cols = []
                for index, col in enumerate(cols):
                    match = self._decimal.search(col)
                    if match:
                        log.info().msg(
                            "%s column %d seems to be a decimal: %s", path, index, col
                        )
                        decimal_cols.append(index)
                        cols[index] = self._shorten(match)
                if not decimal_cols:
                    return
                col_count = len(cols)
            else:
                if len(cols) != col_count:
                    raise ValueError(
                        f"{path}: the first line had {col_count} columns "
                        f"but line {line_num} had {len(cols)} columns"
                    )
                for index in decimal_cols:
                    match = self._decimal.search(cols[index])
                    if match:
                        cols[index] = self._shorten(match)
            yield self._join(cols)