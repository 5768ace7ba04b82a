"""
Spreadsheet Codec - reads tabular bytes into rows of named cells
"""
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional
import logging
import re
import zipfile

from ledger_engine.core.exceptions import EmptySourceError, ValidationError
from ledger_engine.core.money import to_decimal

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_header(header: Any) -> str:
    """Trim, lower-case and collapse whitespace runs to underscores"""
    return _WHITESPACE.sub("_", str(header).strip().lower())


def first_present(row: Dict[str, Any], keys: Iterable[str]) -> Optional[Any]:
    """Value of the first alias present in the row with a non-empty value"""
    for key in keys:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None


def to_number(value: Any):
    """Numeric cell value; strings lose thousands separators, junk becomes 0"""
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    try:
        return to_decimal(value)
    except ValueError:
        return to_decimal(0)


class SpreadsheetCodec:
    """Reads the first sheet of an .xlsx workbook"""

    def read_rows(self, file_bytes: bytes) -> List[Dict[str, Any]]:
        """
        Parse the first sheet: the first row holds headers, each later row
        becomes a dict keyed by normalized header. Blank rows are skipped.
        """
        from openpyxl import load_workbook
        from openpyxl.utils.exceptions import InvalidFileException

        try:
            workbook = load_workbook(BytesIO(file_bytes), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
            raise ValidationError("Unreadable spreadsheet file", {"error": str(exc)})

        try:
            if not workbook.sheetnames:
                raise EmptySourceError("Excel file has no sheets")

            sheet_name = workbook.sheetnames[0]
            sheet = workbook[sheet_name]
            rows = sheet.iter_rows(values_only=True)
            header_row = next(rows, None)
            if header_row is None:
                return []

            headers = [normalize_header(h) if h is not None else None for h in header_row]
            records = []
            for values in rows:
                if values is None or all(v is None or v == "" for v in values):
                    continue
                record = {}
                for header, value in zip(headers, values):
                    if header:
                        record[header] = value
                records.append(record)
        finally:
            workbook.close()

        logger.info(f"Read {len(records)} rows from sheet '{sheet_name}'")
        return records
