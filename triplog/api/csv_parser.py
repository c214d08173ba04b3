"""Permissive CSV tokenizer for spreadsheet exports.

Responsibilities:
- comma separated fields, double-quote enclosure with ``""`` escapes
- CRLF, LF and bare CR as row separators outside quotes
- rows made only of blank fields are dropped
- an unterminated quote swallows the rest of the input, no error

``csv.reader`` is stricter about stray quotes inside unquoted fields, so the
state machine is spelled out here.
"""

from __future__ import annotations

from typing import List


def _is_blank(row: List[str]) -> bool:
    return all(not cell.strip() for cell in row)


def parse_csv(text: str) -> List[List[str]]:
    """Split ``text`` into rows of raw field strings."""
    rows: List[List[str]] = []
    row: List[str] = []
    cell: List[str] = []
    in_quotes = False

    i = 0
    n = len(text)
    while i < n:
        c = text[i]

        if c == '"':
            if in_quotes and i + 1 < n and text[i + 1] == '"':
                cell.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif not in_quotes and c == ",":
            row.append("".join(cell))
            cell = []
        elif not in_quotes and c in "\r\n":
            row.append("".join(cell))
            if not _is_blank(row):
                rows.append(row)
            row = []
            cell = []
            if c == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
        else:
            cell.append(c)
        i += 1

    # Last row without a trailing line terminator
    if cell or row:
        row.append("".join(cell))
        if not _is_blank(row):
            rows.append(row)

    return rows


__all__ = ["parse_csv"]
