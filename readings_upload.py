from __future__ import annotations

import csv
import io
import logging
import math
import pathlib
import zipfile
from dataclasses import dataclass

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from tariff_split.models import MeterReading

logger = logging.getLogger(__name__)

MAIN_ROLES = {"main", "master"}
SUB_ROLES = {"", "sub", "tenant", "user"}


@dataclass(frozen=True)
class ParsingError:
    code: str
    message: str
    row: int | None = None


class UploadValidationError(Exception):
    def __init__(self, errors: list[ParsingError], filename: str) -> None:
        super().__init__("Upload validation failed")
        self.errors = errors
        self.filename = filename

    def user_messages(self) -> list[dict[str, str | int]]:
        return [
            {
                "code": error.code,
                "message": error.message,
                "row": error.row or 0,
            }
            for error in self.errors
        ]


@dataclass(frozen=True)
class ParsedReadings:
    main_meter: MeterReading
    meters: list[MeterReading]


def parse_readings_upload(file_bytes: bytes, original_filename: str) -> ParsedReadings:
    """Parse a readings sheet with one main-meter row and one row per sub-meter.

    Columns: ``role`` (main/sub, optional for sub-meters), ``name``,
    ``meter_no`` (optional), ``previous`` and ``current``.
    """

    suffix = pathlib.Path(original_filename).suffix.lower()
    errors: list[ParsingError] = []

    if suffix == ".csv":
        rows = _parse_csv(file_bytes, errors)
    elif suffix in {".xlsx", ".xlsm"}:
        rows = _parse_xlsx(file_bytes, errors)
    else:
        raise UploadValidationError(
            [
                ParsingError(
                    code="unsupported_format",
                    message="Only CSV or Excel (.xlsx) files are supported.",
                )
            ],
            original_filename,
        )

    if errors:
        raise UploadValidationError(errors, original_filename)

    main_meter, meters = _assign_roles(rows, errors)
    if errors or main_meter is None:
        raise UploadValidationError(errors, original_filename)

    logger.info(
        "Parsed %s with %d sub-meter readings.", original_filename, len(meters)
    )
    return ParsedReadings(main_meter=main_meter, meters=meters)


def _parse_csv(file_bytes: bytes, errors: list[ParsingError]) -> list[dict[str, object]]:
    try:
        text = file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError:
        errors.append(
            ParsingError(code="invalid_encoding", message="CSV file must be UTF-8 encoded.")
        )
        return []

    handle = io.StringIO(text, newline="")
    # Semicolon-separated sheets are common in spreadsheet exports.
    reader = csv.DictReader(handle, delimiter=";")
    first_row = next(reader, None)
    handle.seek(0)
    reader = csv.DictReader(handle, delimiter=";")
    if first_row and len(first_row) <= 1:
        handle.seek(0)
        reader = csv.DictReader(handle, delimiter=",")

    if reader.fieldnames is None:
        errors.append(
            ParsingError(
                code="missing_header",
                message="CSV file is missing a header row.",
            )
        )
        return []

    header = [name.strip() for name in reader.fieldnames]
    keys = _header_keys(header, errors)
    if keys is None:
        return []

    rows: list[dict[str, object]] = []
    for index, raw in enumerate(reader, start=2):
        row = {(name or "").strip(): (value or "").strip() for name, value in raw.items() if name}
        parsed = _parse_row(row, keys, index, errors)
        if parsed is not None:
            rows.append(parsed)
    return rows


def _parse_xlsx(file_bytes: bytes, errors: list[ParsingError]) -> list[dict[str, object]]:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError) as exc:
        logger.info("Rejected unreadable workbook: %s", exc)
        errors.append(
            ParsingError(
                code="invalid_file",
                message="Excel file could not be read.",
            )
        )
        return []
    try:
        sheet = workbook.active
        sheet_rows = list(sheet.iter_rows(values_only=True))
    finally:
        workbook.close()
    if not sheet_rows:
        errors.append(
            ParsingError(
                code="empty_file",
                message="Excel file contains no data.",
            )
        )
        return []

    header = [str(cell).strip() if cell is not None else "" for cell in sheet_rows[0]]
    keys = _header_keys(header, errors)
    if keys is None:
        return []

    rows: list[dict[str, object]] = []
    for index, values in enumerate(sheet_rows[1:], start=2):
        row = {
            name: _cell_to_str(values, position)
            for position, name in enumerate(header)
            if name
        }
        parsed = _parse_row(row, keys, index, errors)
        if parsed is not None:
            rows.append(parsed)
    return rows


def _header_keys(header: list[str], errors: list[ParsingError]) -> dict[str, str] | None:
    keys = {
        "role": _find_header(header, ["role", "type", "meter_type"]) or "",
        "name": _find_header(header, ["name", "tenant", "user", "meter"]) or "",
        "meter_no": _find_header(header, ["meter_no", "meter no", "meter_number"]) or "",
        "previous": _find_header(header, ["previous", "prev", "previous_reading"]) or "",
        "current": _find_header(header, ["current", "curr", "current_reading"]) or "",
    }
    if not keys["previous"] or not keys["current"]:
        errors.append(
            ParsingError(
                code="missing_columns",
                message="Expected columns previous and current.",
            )
        )
        return None
    return keys


def _parse_row(
    row: dict[str, str],
    keys: dict[str, str],
    index: int,
    errors: list[ParsingError],
) -> dict[str, object] | None:
    previous_raw = row.get(keys["previous"], "")
    current_raw = row.get(keys["current"], "")
    if not previous_raw and not current_raw:
        return None

    previous = _parse_float(previous_raw, index, errors)
    current = _parse_float(current_raw, index, errors)
    if previous is None or current is None:
        return None

    role = row.get(keys["role"], "").lower() if keys["role"] else ""
    if role not in MAIN_ROLES and role not in SUB_ROLES:
        errors.append(
            ParsingError(
                code="invalid_role",
                message=f"Unknown meter role: {role}.",
                row=index,
            )
        )
        return None

    return {
        "role": "main" if role in MAIN_ROLES else "sub",
        "reading": MeterReading(
            previous=previous,
            current=current,
            name=row.get(keys["name"], "") if keys["name"] else "",
            meter_no=row.get(keys["meter_no"], "") if keys["meter_no"] else "",
        ),
        "row": index,
    }


def _assign_roles(
    rows: list[dict[str, object]],
    errors: list[ParsingError],
) -> tuple[MeterReading | None, list[MeterReading]]:
    main_rows = [row for row in rows if row["role"] == "main"]
    meters = [row["reading"] for row in rows if row["role"] == "sub"]

    if not main_rows:
        errors.append(
            ParsingError(code="missing_main_meter", message="No main meter row found.")
        )
    for row in main_rows[1:]:
        errors.append(
            ParsingError(
                code="duplicate_main_meter",
                message="Only one main meter row is allowed.",
                row=row["row"],
            )
        )
    if not meters:
        errors.append(
            ParsingError(code="empty_data", message="No sub-meter readings found.")
        )

    main_meter = main_rows[0]["reading"] if main_rows else None
    return main_meter, meters


def _parse_float(raw: str, row: int, errors: list[ParsingError]) -> float | None:
    cleaned = raw.replace(" ", "").replace(",", ".")
    try:
        value = float(cleaned)
    except ValueError:
        value = None
    if value is None or not math.isfinite(value):
        errors.append(
            ParsingError(
                code="invalid_value",
                message=f"Invalid reading: {raw}.",
                row=row,
            )
        )
        return None
    return value


def _find_header(header: list[str], candidates: list[str]) -> str | None:
    lowered = {name.lower(): name for name in header}
    for candidate in candidates:
        if candidate.lower() in lowered:
            return lowered[candidate.lower()]
    return None


def _cell_to_str(row: tuple[object, ...], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    value = row[index]
    if value is None:
        return ""
    return str(value).strip()
