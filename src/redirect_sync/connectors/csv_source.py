"""
CSV Connector - Reads and writes redirect files.

Redirect files are delimited text with a header row, ``;`` by default:

    from;to;type;endDate
    /old-shoes;/shoes;PERMANENT;
    /sale;/summer-sale;TEMPORARY;2026-12-31

Delete files only need the ``from`` column.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from redirect_sync.errors import ReadError, ValidationError

RecordT = TypeVar("RecordT", bound=BaseModel)


def read_bytes(path: Path | str) -> bytes:
    """Read an input file's raw bytes, raising ReadError on any I/O problem."""
    path = Path(path)
    try:
        return path.read_bytes()
    except FileNotFoundError:
        raise ReadError(path, "file not found") from None
    except IsADirectoryError:
        raise ReadError(path, "is a directory") from None
    except OSError as e:
        raise ReadError(path, e.strerror or str(e)) from e


def decode(data: bytes, path: Path | str = "<input>") -> str:
    """Decode UTF-8 input, tolerating a byte order mark."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ReadError(path, f"not valid UTF-8 ({e.reason})") from e


def read_text(path: Path | str) -> str:
    """Read a UTF-8 input file, raising ReadError on any I/O or decoding problem."""
    return decode(read_bytes(path), path)


def parse_records(
    text: str,
    model: type[RecordT],
    source: Path | str = "<input>",
    delimiter: str = ";",
) -> list[RecordT]:
    """
    Parse and validate delimited text into records.

    Blank lines are skipped and empty cells are treated as missing values.
    All rows are validated before returning so the operator sees every
    problem at once.

    Args:
        text: File contents
        model: Pydantic model each row must satisfy
        source: Path used in error messages
        delimiter: Field delimiter

    Returns:
        Records in file order

    Raises:
        ValidationError: if the header is missing or any row is invalid
    """
    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    if not reader.fieldnames:
        raise ValidationError(source, ["missing header row"])

    records: list[RecordT] = []
    problems: list[str] = []

    for row in reader:
        # DictReader numbers physical lines; the header is line 1
        line = reader.line_num
        if None in row:
            problems.append(f"line {line}: too many fields")
            continue

        values = {
            key.strip(): value.strip()
            for key, value in row.items()
            if key is not None and value is not None and value.strip() != ""
        }
        if not values:
            continue

        try:
            records.append(model.model_validate(values))
        except PydanticValidationError as e:
            for err in e.errors():
                field = ".".join(str(part) for part in err["loc"]) or "row"
                problems.append(f"line {line}: {field}: {err['msg']}")

    if problems:
        raise ValidationError(source, problems)

    return records


def read_records(
    path: Path | str,
    model: type[RecordT],
    delimiter: str = ";",
) -> list[RecordT]:
    """Read a redirect file and validate every row against ``model``."""
    return parse_records(read_text(path), model, source=path, delimiter=delimiter)


def write_paths(
    path: Path | str,
    keys: Iterable[str],
    delimiter: str = ";",
) -> Path:
    """Write a delete file containing one ``from`` path per row."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, delimiter=delimiter)
        writer.writerow(["from"])
        for key in keys:
            writer.writerow([key])

    return path
