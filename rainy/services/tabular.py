"""
Content dispatch for Graph responses.

Each response is classified once into a :class:`ContentKind`; tabular kinds
are read back from a temporary file with pandas.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional, Sequence, Union
from urllib.parse import urlsplit

import pandas as pd

from rainy.clients.errors import ParseError

logger = logging.getLogger(__name__)

SheetSelector = Union[int, str, Sequence[Union[int, str]]]


class ContentKind(str, Enum):
    JSON = "json"
    BINARY = "binary"
    SERIALIZED_OBJECT = "serialized_object"
    SPREADSHEET = "spreadsheet"
    DELIMITED_TEXT = "delimited_text"

    @property
    def is_tabular(self) -> bool:
        return self in _TABULAR_KINDS


_EXTENSION_KINDS = {
    ".pkl": ContentKind.SERIALIZED_OBJECT,
    ".pickle": ContentKind.SERIALIZED_OBJECT,
    ".xls": ContentKind.SPREADSHEET,
    ".xlsx": ContentKind.SPREADSHEET,
    ".csv": ContentKind.DELIMITED_TEXT,
}
_TABULAR_KINDS = frozenset(_EXTENSION_KINDS.values())


def normalize_extension(fileext: Optional[str]) -> str:
    """Lowercase ``fileext`` and give it a leading dot (``"CSV"`` -> ``".csv"``)."""
    ext = (fileext or "").lower()
    if not ext.startswith("."):
        ext = f".{ext}"
    return ext


def is_download(verb: str, url: str) -> bool:
    """A GET whose URL path ends in ``content`` fetches file bytes."""
    return verb.upper() == "GET" and urlsplit(url).path.lower().endswith("content")


def classify(verb: str, url: str, fileext: Optional[str] = "") -> ContentKind:
    if not is_download(verb, url):
        return ContentKind.JSON
    return _EXTENSION_KINDS.get(normalize_extension(fileext), ContentKind.BINARY)


@dataclass(frozen=True)
class TableOptions:
    """Reader options shared by spreadsheet and delimited text parsing.

    ``col_types="text"`` reads every column as strings; any other value is
    handed to pandas as ``dtype``.
    """

    sheet: SheetSelector = 0
    skip: int = 0
    col_types: Any = None

    @property
    def dtype(self) -> Any:
        if self.col_types == "text":
            return str
        return self.col_types


@contextlib.contextmanager
def scoped_tempfile(suffix: str) -> Iterator[str]:
    """Yield a temporary file path that is removed however the block exits."""
    fd, path = tempfile.mkstemp(suffix=suffix, prefix="rainy-")
    os.close(fd)
    try:
        yield path
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.remove(path)


def _read_serialized(path: str, options: TableOptions) -> Any:
    return pd.read_pickle(path)


def _read_spreadsheet(path: str, options: TableOptions) -> Any:
    sheets = options.sheet
    single = isinstance(sheets, (int, str))
    if not single and len(sheets) == 1:
        sheets, single = sheets[0], True
    return pd.read_excel(
        path,
        sheet_name=sheets if single else list(sheets),
        skiprows=options.skip,
        dtype=options.dtype,
    )


def _read_delimited(path: str, options: TableOptions) -> pd.DataFrame:
    return pd.read_csv(path, skiprows=options.skip, dtype=options.dtype)


_READERS = {
    ContentKind.SERIALIZED_OBJECT: _read_serialized,
    ContentKind.SPREADSHEET: _read_spreadsheet,
    ContentKind.DELIMITED_TEXT: _read_delimited,
}


def read_table(kind: ContentKind, path: str, options: Optional[TableOptions] = None) -> Any:
    """Parse a downloaded file according to ``kind``."""
    reader = _READERS[kind]
    try:
        return reader(path, options or TableOptions())
    except Exception as exc:  # pickle and the excel engines raise their own types
        logger.debug("Table reader for %s failed", kind.value, exc_info=True)
        raise ParseError(f"Could not read {kind.value} content: {exc}") from exc


__all__ = [
    "ContentKind",
    "TableOptions",
    "classify",
    "is_download",
    "normalize_extension",
    "read_table",
    "scoped_tempfile",
]
