from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple
import numpy as np
import csv
from io import StringIO

from .errors import ShapeError


@dataclass(frozen=True)
class ParseIssue:
    message: str
    group_index: Optional[int] = None
    column: Optional[str] = None


# Matches floats like: 1, -2, 3.14, .5, 1., 1e-3, -2.3E+5, nan
_FLOAT_TOKEN = re.compile(
    r"""
    [-+]?
    (?:
        (?:\d+(?:\.\d*)?)   # 1 or 1. or 1.23
        |
        (?:\.\d+)           # .23
        |
        (?:\b[nN][aA][nN]\b)
    )
    (?:[eE][-+]?\d+)?       # optional exponent
    """,
    re.VERBOSE,
)

_MISSING = ("", "na", "nan", "n/a", "null", "none")


def parse_inline_vector(text: str) -> Tuple[np.ndarray, Optional[str]]:
    """
    Parse a 1D vector of floats from arbitrary pasted text.
    Accepts commas/spaces/newlines/brackets/mixed separators.
    Returns (array, error_message_or_None).
    """
    raw = (text or "").strip()
    if not raw:
        return np.asarray([], dtype=float), "No numeric values found."

    vals = [float(m.group(0)) for m in _FLOAT_TOKEN.finditer(raw)]
    if not vals:
        return np.asarray([], dtype=float), "No numeric values found."

    return np.asarray(vals, dtype=float), None


def parse_table_with_header(text: str) -> Tuple[List[str], List[List[str]], Optional[str]]:
    """
    Parse a pasted table with a header row.

    Supports:
      - CSV (comma)
      - TSV (tab)
      - semicolon separated
      - whitespace separated

    Returns: (header, rows, err)
    """
    raw = (text or "").strip()
    if not raw:
        return [], [], "Table text is empty."

    lines = [ln for ln in raw.splitlines() if ln.strip()]
    if len(lines) < 2:
        return [], [], "Table must have at least a header row and one data row."

    sample = "\n".join(lines[:10])

    candidate_delims = [",", "\t", ";"]
    delim = None
    best = 0
    for d in candidate_delims:
        c = sample.count(d)
        if c > best:
            best = c
            delim = d

    if delim is not None:
        reader = csv.reader(StringIO("\n".join(lines)), delimiter=delim)
        table = [[cell.strip() for cell in row] for row in reader if row and any(c.strip() for c in row)]
    else:
        table = [ln.strip().split() for ln in lines]

    if len(table) < 2:
        return [], [], "Table must contain a header and at least one data row."

    header = [h.strip() for h in table[0]]
    if not header or all(h == "" for h in header):
        return [], [], "Header row is empty."

    # pad short rows so every column has the same length
    ncol = len(header)
    norm_rows: List[List[str]] = []
    for r in table[1:]:
        r2 = list(r[:ncol]) + ([""] * max(0, ncol - len(r)))
        norm_rows.append([c.strip() for c in r2])

    return header, norm_rows, None


def table_to_columns(header: List[str], rows: List[List[str]]) -> List[List[str]]:
    """
    Convert (header, rows) to columns of cell strings, in header order.
    """
    return [[r[i] if i < len(r) else "" for r in rows] for i in range(len(header))]


def col_as_float(col: List[str], col_name: str) -> Tuple[np.ndarray, Optional[str]]:
    """
    Convert a column of strings to a float numpy array.
    Empty or NA-like cells become NaN so that columns stay row-aligned.
    Errors on first non-numeric cell.
    """
    out: List[float] = []
    for i, cell in enumerate(col):
        s = "" if cell is None else str(cell).strip()
        if s.lower() in _MISSING:
            out.append(float("nan"))
            continue
        try:
            out.append(float(s))
        except ValueError:
            # +2: header is row 1, data starts at row 2
            return np.asarray([], dtype=float), f"Non-numeric value in column '{col_name}' at row {i + 2}: {s!r}"

    return np.asarray(out, dtype=float), None


def groups_from_table_text(text: str) -> Tuple[np.ndarray, List[str]]:
    """
    Parse a header table into a (rows x columns) float array plus column labels.
    Raises ShapeError on the first problem found.
    """
    header, rows, err = parse_table_with_header(text)
    if err:
        raise ShapeError(err)

    seen = set()
    dupes = []
    for name in header:
        if name in seen and name not in dupes:
            dupes.append(name)
        seen.add(name)
    if dupes:
        raise ShapeError(f"Duplicate column name(s): {', '.join(repr(d) for d in dupes)}")

    cols = table_to_columns(header, rows)
    arrays: List[np.ndarray] = []
    issues: List[ParseIssue] = []
    for idx, name in enumerate(header):
        arr, err = col_as_float(cols[idx], name)
        if err:
            issues.append(ParseIssue(message=err, group_index=idx, column=name))
            continue
        arrays.append(arr)

    if issues:
        raise ShapeError("; ".join(iss.message for iss in issues))

    return np.column_stack(arrays), list(header)


def groups_from_inline_texts(texts: List[str]) -> List[np.ndarray]:
    """Parse one pasted vector per group."""
    out: List[np.ndarray] = []
    for idx, text in enumerate(texts):
        arr, err = parse_inline_vector(text)
        if err:
            raise ShapeError(f"Group {idx + 1}: {err}")
        out.append(arr)
    return out
