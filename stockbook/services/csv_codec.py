"""CSV reading and writing for the import/export endpoints.

The parser is deliberately permissive: it never raises, drops rows whose
fields are all empty, and treats the end of input as closing an open quote.
Output always starts with a UTF-8 BOM so that Excel opens it correctly.
"""

import csv
import io
import re
from datetime import datetime, timedelta, timezone

BOM = "\ufeff"
CRLF = "\r\n"
LF = "\n"

# Days between the spreadsheet epoch (1899-12-30) and 1970-01-01
EXCEL_EPOCH_OFFSET = 25569
# Serial 60 is the non-existent 1900-02-29
EXCEL_LEAP_BUG_SERIAL = 59
YEAR_MARKER = "年"

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_LEADING_INT = re.compile(r"^[+-]?\d+")


def parse_csv(content: str) -> list[list[str]]:
    rows: list[list[str]] = []
    text = content[1:] if content.startswith(BOM) else content
    row: list[str] = []
    field: list[str] = []
    in_quotes = False
    i = 0
    n = len(text)

    def end_row():
        row.append("".join(field))
        field.clear()
        if any(cell != "" for cell in row):
            rows.append(list(row))
        row.clear()

    while i < n:
        char = text[i]

        if char == '"':
            if in_quotes and i + 1 < n and text[i + 1] == '"':
                field.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
            i += 1
            continue

        if not in_quotes and char in ("\r", "\n"):
            if char == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
            end_row()
            i += 1
            continue

        if not in_quotes and char == ",":
            row.append("".join(field))
            field.clear()
            i += 1
            continue

        field.append(char)
        i += 1

    end_row()
    return rows


def serialize_csv(headers, rows, *, line_terminator: str = CRLF, quote_all: bool = False) -> str:
    """Render a header row plus data rows.

    ``quote_all`` wraps every data field in quotes; the header row always
    uses minimal quoting. No terminator follows the last row.
    """
    output = io.StringIO()
    csv.writer(output, lineterminator=line_terminator).writerow(headers)
    data_writer = csv.writer(
        output,
        quoting=csv.QUOTE_ALL if quote_all else csv.QUOTE_MINIMAL,
        lineterminator=line_terminator,
    )
    data_writer.writerows(rows)
    return BOM + output.getvalue()[: -len(line_terminator)]


def convert_excel_serial_date(value: str | None) -> str | None:
    """Turn an Excel serial day number into "YYYY年M月".

    Already formatted values, anything that is not a positive integer and
    serials past the last representable date are returned trimmed but
    otherwise untouched.
    """
    if value is None or not str(value).strip():
        return None
    trimmed = str(value).strip()

    if YEAR_MARKER in trimmed:
        return trimmed

    match = _LEADING_INT.match(trimmed)
    if not match:
        return trimmed
    try:
        serial = int(match.group(0))
    except ValueError:
        return trimmed
    if serial < 1:
        return trimmed

    # Serials up to 59 count from 1900-01-01 as day 1; later ones skip the phantom leap day
    if serial > EXCEL_LEAP_BUG_SERIAL:
        serial -= 1
    else:
        serial += 1
    try:
        date = _UNIX_EPOCH + timedelta(days=serial - EXCEL_EPOCH_OFFSET)
    except OverflowError:
        return trimmed
    return f"{date.year}{YEAR_MARKER}{date.month}月"


def format_datetime(value: datetime | None) -> str:
    if value is None:
        return ""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S")
