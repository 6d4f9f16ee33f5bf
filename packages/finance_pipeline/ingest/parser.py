"""Parse raw CSV or JSON text into loosely-typed rows with canonical names.

CSV handling
------------
- Line endings are normalized, the text is split on newlines, and each line is
  split on the detected delimiter with ``csv.reader`` (quoted delimiters do not
  split a cell; ``""`` inside quotes unescapes to ``"``).
- The delimiter is ``;`` when the header line has at least as many semicolons
  as commas, otherwise ``,``.
- Quoted cells spanning several lines are not supported: the record is split
  at the newline like any other line.

JSON handling
-------------
- The document must be a non-empty array of objects. A ``{"transactions":
  [...]}`` wrapper is unwrapped first.
- Keys are kept as-is; nested bank-API shapes are flattened with
  :func:`finance_pipeline.ingest.columns.flatten_json_record`.
"""

from __future__ import annotations

import csv
import json
from collections.abc import Mapping
from pathlib import PurePath
from typing import Any

from ..errors import ParseError
from ..logging_setup import get_logger
from ..models import RawRow
from .columns import flatten_json_record, map_header

_logger = get_logger("finance_pipeline.ingest.parser")


def _detect_delimiter(header_line: str) -> str:
    return ";" if header_line.count(";") >= header_line.count(",") else ","


def _clean_cell(value: str) -> str:
    s = value.strip()
    if len(s) >= 2 and s[0] == '"' and s[-1] == '"':
        s = s[1:-1].replace('""', '"').strip()
    return s


def _split_line(line: str, delimiter: str) -> list[str]:
    cells = next(csv.reader([line], delimiter=delimiter, quotechar='"'), [])
    return [_clean_cell(c) for c in cells]


def parse_csv(text: str, *, filename: str | None = None) -> list[RawRow]:
    """Parse delimited text into rows keyed by canonical column name.

    Raises
    ------
    ParseError
        When ``text`` is empty or the header row has fewer than two columns.
    """

    if not text or not text.strip():
        raise ParseError("input is empty", filename=filename)

    lines = text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n").split("\n")
    lines = [ln for ln in lines if ln.strip()]
    if not lines:
        raise ParseError("input is empty", filename=filename)
    header_line = lines[0]
    delimiter = _detect_delimiter(header_line)
    headers = [map_header(h) for h in _split_line(header_line, delimiter)]
    if len(headers) < 2:
        raise ParseError(
            f"header row has {len(headers)} column(s); at least 2 are required",
            filename=filename,
        )

    rows: list[RawRow] = []
    for lineno, line in enumerate(lines[1:], start=2):
        cells = _split_line(line, delimiter)
        if len(cells) > len(headers):
            _logger.debug(
                "parse_csv:extra_cells; ignoring line=%d cells=%d headers=%d",
                lineno,
                len(cells),
                len(headers),
            )
        row: RawRow = {h: (cells[i] if i < len(cells) else "") for i, h in enumerate(headers)}
        rows.append(row)

    _logger.debug(
        "parse_csv:done; filename=%s delimiter=%r rows=%d", filename, delimiter, len(rows)
    )
    return rows


def parse_json(text: str, *, filename: str | None = None) -> list[RawRow]:
    """Parse a JSON array of transaction-shaped objects.

    Raises
    ------
    ParseError
        When ``text`` is empty, not valid JSON, or not a non-empty array of
        objects.
    """

    if not text or not text.strip():
        raise ParseError("input is empty", filename=filename)
    try:
        data: Any = json.loads(text.lstrip("\ufeff"))
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e}", filename=filename) from e

    if isinstance(data, Mapping) and isinstance(data.get("transactions"), list):
        data = data["transactions"]
    if not isinstance(data, list) or not data:
        raise ParseError("JSON input must be a non-empty array of transactions", filename=filename)

    rows: list[RawRow] = []
    for i, item in enumerate(data):
        if not isinstance(item, Mapping):
            raise ParseError(
                f"JSON element {i} is {type(item).__name__}, expected an object",
                filename=filename,
            )
        rows.append(flatten_json_record(item))

    _logger.debug("parse_json:done; filename=%s rows=%d", filename, len(rows))
    return rows


def _looks_like_json(filename: str | None, text: str) -> bool:
    if filename:
        suffix = PurePath(filename).suffix.lower()
        if suffix == ".json":
            return True
        if suffix in {".csv", ".txt"}:
            return False
    head = text.lstrip("\ufeff \t\r\n")[:1]
    return head in {"[", "{"}


def parse_text(text: str, filename: str | None = None) -> list[RawRow]:
    """Parse ``text`` as JSON or CSV, chosen by extension then content."""

    if _looks_like_json(filename, text):
        return parse_json(text, filename=filename)
    return parse_csv(text, filename=filename)


__all__ = ["parse_csv", "parse_json", "parse_text"]
