"""Org directory lookups and employee spreadsheet import."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from openpyxl import load_workbook  # type: ignore[import-untyped]
from pydantic import ValidationError

from .config import normalize_email
from .errors import DirectoryLookupFailed
from .models import EmployeeRecord

logger = logging.getLogger(__name__)

# Spreadsheet header -> EmployeeRecord field.
SPREADSHEET_COLUMNS: dict[str, str] = {
    "Employee Number": "employee_number",
    "Employee Name": "name",
    "Curr.Designation": "designation",
    "Email": "email",
    "Phone": "phone",
    "Manager Email Id": "manager_email",
    "Impact Level": "impact_level",
}
_REQUIRED_FIELDS = ("email", "employee_number", "name")


class OrgDirectory(Protocol):
    """Lookup from employee email to directory record."""

    def lookup(self, email: str) -> EmployeeRecord | None:
        """Return the record for ``email`` or None when absent."""


def lookup_employee(directory: OrgDirectory, email: str) -> EmployeeRecord | None:
    """Look up ``email``, turning backend failures into ``DirectoryLookupFailed``."""

    try:
        return directory.lookup(email)
    except DirectoryLookupFailed:
        raise
    except Exception as exc:
        raise DirectoryLookupFailed(
            email, f"Directory lookup failed for {email}: {exc}"
        ) from exc


@dataclass
class InMemoryOrgDirectory:
    """Directory snapshot held in memory, keyed by normalised email."""

    employees: dict[str, EmployeeRecord] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: Iterable[EmployeeRecord]) -> InMemoryOrgDirectory:
        directory = cls()
        for record in records:
            directory.upsert(record)
        return directory

    def lookup(self, email: str) -> EmployeeRecord | None:
        return self.employees.get(normalize_email(email))

    def upsert(self, record: EmployeeRecord) -> EmployeeRecord:
        self.employees[record.email] = record
        return record

    def remove(self, email: str) -> EmployeeRecord | None:
        return self.employees.pop(normalize_email(email), None)

    def direct_reports(self, manager_email: str) -> list[EmployeeRecord]:
        """Return employees whose direct manager is ``manager_email``."""

        target = normalize_email(manager_email)
        return [
            record for record in self.employees.values() if record.manager_email == target
        ]

    def __len__(self) -> int:
        return len(self.employees)


def _read_header(row: Mapping[str, object], header: str) -> object:
    if header in row:
        return row[header]
    wanted = header.strip().lower()
    for key, value in row.items():
        if key.strip().lower() == wanted:
            return value
    return None


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def record_from_row(row: Mapping[str, object]) -> EmployeeRecord | None:
    """Build a record from a spreadsheet row, or None when it must be skipped."""

    values = {
        field_name: _cell_text(_read_header(row, header))
        for header, field_name in SPREADSHEET_COLUMNS.items()
    }
    if any(not values[name] for name in _REQUIRED_FIELDS):
        return None
    try:
        return EmployeeRecord.model_validate(values)
    except ValidationError:
        logger.warning("Skipping invalid directory row for %s", values["email"])
        return None


def load_directory_rows(rows: Iterable[Mapping[str, object]]) -> InMemoryOrgDirectory:
    """Build a directory from header-keyed rows, skipping incomplete ones."""

    directory = InMemoryOrgDirectory()
    skipped = 0
    for row in rows:
        record = record_from_row(row)
        if record is None:
            skipped += 1
            continue
        directory.upsert(record)
    logger.info("Loaded %d employees (%d rows skipped)", len(directory), skipped)
    return directory


def load_directory_spreadsheet(path: str | Path) -> InMemoryOrgDirectory:
    """Load the first sheet of an employee workbook into a directory."""

    workbook = load_workbook(Path(path), read_only=True, data_only=True)
    try:
        if not workbook.sheetnames:
            raise ValueError(f"No sheets found in workbook: {path}")
        sheet = workbook[workbook.sheetnames[0]]
        row_iter = sheet.iter_rows(values_only=True)
        header_row = next(row_iter, None)
        if header_row is None:
            return InMemoryOrgDirectory()
        headers = [_cell_text(cell) for cell in header_row]
        rows = (dict(zip(headers, values, strict=False)) for values in row_iter)
        return load_directory_rows(rows)
    finally:
        workbook.close()


def load_directory_json(path: str | Path) -> InMemoryOrgDirectory:
    """Load a JSON list of employee records into a directory."""

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, Mapping):
        payload = payload.get("employees", [])
    if not isinstance(payload, list):
        raise ValueError(f"Directory file must contain a list of employees: {path}")
    return InMemoryOrgDirectory.from_records(
        EmployeeRecord.model_validate(item) for item in payload
    )


def load_directory(path: str | Path) -> InMemoryOrgDirectory:
    """Load a directory from an ``.xlsx`` workbook or a ``.json`` file."""

    target = Path(path)
    if target.suffix.lower() in {".xlsx", ".xlsm"}:
        return load_directory_spreadsheet(target)
    if target.suffix.lower() == ".json":
        return load_directory_json(target)
    raise ValueError(f"Unsupported directory format: {target.suffix or target.name}")
