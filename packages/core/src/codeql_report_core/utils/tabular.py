"""CSV input and output for the report.

Reading is all-or-nothing: a single malformed row fails the whole read and
no rows are returned.
"""

from __future__ import annotations

import csv
from typing import Iterable, Sequence

from codeql_report_core.errors import FormatError


def read_rows(path: str) -> list[dict[str, str]]:
    """Read a CSV file and return its data rows keyed by the header line.

    Blank lines are skipped. Raises OSError if the file cannot be opened and
    FormatError if the file is not valid UTF-8, has no header, or any row's
    field count differs from the header's.
    """
    # utf-8-sig drops the BOM spreadsheet exports like to prepend.
    with open(path, newline="", encoding="utf-8-sig") as f:
        reader = csv.reader(f)
        try:
            header = next(reader)
        except StopIteration:
            raise FormatError(f"{path} is empty: expected a header line")
        except csv.Error as e:
            raise FormatError(f"failed to read CSV header from {path}: {e}") from e
        except UnicodeDecodeError as e:
            raise FormatError(f"{path} is not valid UTF-8: {e}") from e

        rows: list[dict[str, str]] = []
        try:
            for row in reader:
                if not row:
                    continue
                if len(row) != len(header):
                    raise FormatError(
                        f"{path} line {reader.line_num}: row length ({len(row)}) does not match "
                        f"header length ({len(header)}): {row}"
                    )
                rows.append(dict(zip(header, row)))
        except csv.Error as e:
            raise FormatError(f"failed to read CSV row from {path} line {reader.line_num}: {e}") from e
        except UnicodeDecodeError as e:
            raise FormatError(f"{path} is not valid UTF-8 after line {reader.line_num}: {e}") from e

    return rows


def write_rows(path: str, header: Sequence[str], rows: Iterable[Sequence[str]]) -> None:
    """Create or truncate ``path`` and write ``header`` followed by ``rows``.

    Every row must have exactly as many cells as the header; the shape is
    checked before the file is touched so a bad row never truncates an
    existing report.
    """
    rows = [list(r) for r in rows]
    for i, row in enumerate(rows, start=1):
        if len(row) != len(header):
            raise FormatError(f"output row {i} has {len(row)} cells, header has {len(header)}: {row}")

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)
        f.flush()
