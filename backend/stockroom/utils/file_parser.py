"""
file_parser.py
==============

Turn an uploaded **CSV** file into a `pandas.DataFrame` of strings.

* Bytes are decoded with a **chardet** guess first, then a fixed fallback list
* Lines are split with a quote-aware tokenizer: a ``"`` toggles "inside a
  field" so embedded commas survive, and one leading / trailing quote is
  stripped from every field
* Blank lines are dropped; the first remaining line is the header
* Every value is a ``str`` (missing trailing cells become ``""``)
* Input with no non-blank line raises :class:`ParseError`

Accepts FastAPI ``UploadFile`` / ``Path`` / ``str`` path / ``bytes`` so the
same entry point serves the API, the Celery task and pytest.
"""

from __future__ import annotations

import re
import unicodedata
from pathlib import Path
from typing import Final, Iterable

import chardet
import pandas as pd

from stockroom.services.errors import ParseError

from fastapi import UploadFile


ENCODINGS: Final[list[str]] = [
    "utf-8",
    "utf-8-sig",
    "utf-16",
    "cp1252",
    "iso8859-1",
]


# --------------------------------------------------------------------------- #
# public API                                                                  #
# --------------------------------------------------------------------------- #
def read_csv_upload(file: UploadFile | str | Path | bytes | bytearray) -> tuple[pd.DataFrame, str]:
    """
    Parameters
    ----------
    file :
        * **FastAPI UploadFile** – real uploads
        * **str / Path** – a file on disk (tests, scripts)
        * **bytes / bytearray** – raw content already in memory

    Returns
    -------
    (pandas.DataFrame, str)
        The parsed table (header row → columns, all values ``str``) and the
        original file name (``""`` for raw bytes).

    Raises
    ------
    ParseError
        - empty file / only blank lines
        - bytes that no candidate encoding can decode
    """
    text, filename = read_upload_text(file)
    return parse_csv_text(text), filename


def read_upload_text(file: UploadFile | str | Path | bytes | bytearray) -> tuple[str, str]:
    """Decoded text + file name, for callers that hand the text on (Celery)."""
    raw, filename = _get_raw_and_name(file)
    return decode_bytes(raw), filename


def decode_bytes(raw: bytes) -> str:
    """Decode *raw* using the chardet guess, then the fallback encodings."""
    if not raw:
        raise ParseError("CSV file is empty")

    # UTF-16 exports carry NUL bytes in the first KB
    might_be_utf16 = b"\x00" in raw[:1024]
    enc_guess: str = (chardet.detect(raw[:4096]).get("encoding") or "").lower()

    enc_try_order = (["utf-16"] if might_be_utf16 else []) + ["utf-8-sig", enc_guess] + ENCODINGS
    for enc in _unique(enc_try_order):
        if not enc:
            continue
        try:
            return raw.decode(enc)
        except (UnicodeDecodeError, LookupError):
            continue
    raise ParseError("Cannot decode CSV – unknown encoding")


def tokenize_line(line: str) -> list[str]:
    """Split one CSV line on commas that are not inside double quotes."""
    cells: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            cells.append(_clean_cell("".join(current)))
            current = []
        else:
            current.append(ch)
    cells.append(_clean_cell("".join(current)))
    return cells


def parse_csv_text(text: str) -> pd.DataFrame:
    """Parse decoded CSV text into a DataFrame of strings.

    Column labels are kept as written (minus BOM / surrounding quotes); the
    import layer does the case-insensitive matching.
    """
    lines = [ln for ln in text.split("\n") if ln.strip()]
    if not lines:
        raise ParseError("CSV file is empty")

    headers = [h.replace("\ufeff", "") for h in tokenize_line(lines[0])]
    width = len(headers)

    rows: list[list[str]] = []
    for ln in lines[1:]:
        cells = tokenize_line(ln)
        if len(cells) < width:
            cells = cells + [""] * (width - len(cells))
        rows.append(cells[:width])

    return pd.DataFrame(rows, columns=headers, dtype=str)


def normalize_header(name: str) -> str:  # noqa: D401
    """Return a canonicalised CSV header.

    1. Strip a BOM (``\\ufeff``).
    2. Unicode NFKC folding (full-width ‹ＡＢＣ› → ‹ABC›).
    3. Strip surrounding quotes.
    4. Remove *all* whitespace.
    5. Lower-case.
    """
    name = str(name).replace("\ufeff", "")
    name = unicodedata.normalize("NFKC", name)
    name = name.strip().strip("'\"")
    name = re.sub(r"\s+", "", name)
    return name.lower()


__all__ = [
    "read_csv_upload",
    "read_upload_text",
    "decode_bytes",
    "tokenize_line",
    "parse_csv_text",
    "normalize_header",
]


# --------------------------------------------------------------------------- #
# helpers (private)                                                           #
# --------------------------------------------------------------------------- #
def _clean_cell(value: str) -> str:
    value = value.strip()
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value


def _get_raw_and_name(
    file: UploadFile | str | Path | bytes | bytearray,
) -> tuple[bytes, str]:
    """
    Convert various *file-like* inputs into raw bytes + filename.

    Accepts:

    * FastAPI / Starlette ``UploadFile`` (objects with ``.file`` & ``.filename``)
    * ``str`` / ``pathlib.Path`` pointing to a file on disk
    * ``bytes`` / ``bytearray`` already in memory
    """
    # ----------------------- in-memory bytes ------------------------------
    if isinstance(file, (bytes, bytearray)):
        return bytes(file), ""

    # ----------------------- filesystem path ------------------------------
    if isinstance(file, (str, Path)):
        p = Path(file)
        return p.read_bytes(), p.name

    # ------------------- FastAPI / Starlette UploadFile -------------------
    if isinstance(file, UploadFile):
        return file.file.read(), file.filename or ""

    # ---------------------------- duck typing -----------------------------
    if hasattr(file, "file") and hasattr(file, "filename"):
        return file.file.read(), getattr(file, "filename", "") or ""

    raise TypeError(
        "file must be UploadFile | str | Path | bytes | bytearray; "
        f"got {type(file)}"
    )


def _unique(seq: Iterable[str]) -> list[str]:
    """Drop duplicates, keep order."""
    seen: set[str] = set()
    out: list[str] = []
    for item in seq:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out
