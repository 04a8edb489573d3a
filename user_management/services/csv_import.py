"""
Parsing of bulk user import files.

The file is a UTF-8 CSV with a header row. Column names are matched
case-insensitively and a few spellings used by older exports are accepted.
Parsing never touches the database: it only decides which rows are
candidates for insertion, which are malformed and which repeat an email that
already appeared earlier in the same file.
"""

import csv
import io
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional
from user_management.exceptions import ImportFileError
from user_management.roles import (
    UserRole,
    UserStatus,
    normalize_id_type,
    normalize_role,
    normalize_status,
)
from user_management.schemas.bulk_import import ImportIssue

HEADER_ALIASES = {
    "email": "email",
    "correo": "email",
    "fullname": "fullname",
    "full_name": "fullname",
    "name": "fullname",
    "role": "role",
    "password": "password",
    "passwordplain": "password",
    "current_password": "password",
    "status": "status",
    "phone": "phone",
    "date_of_birth": "date_of_birth",
    "birth_date": "date_of_birth",
    "department": "department",
    "department_name": "department",
    "specialty": "specialty",
    "specialization": "specialty",
    "id_type": "id_type",
    "id_number": "id_number",
    "license_number": "license_number",
}

REQUIRED_COLUMNS = ("email", "fullname", "role")
DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d")
EMPTY_OR_MALFORMED = "The CSV file is empty or badly formatted"


@dataclass
class ImportRow:
    line: int
    email: str
    fullname: str
    role: UserRole
    status: UserStatus = UserStatus.PENDING
    password: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    department: Optional[str] = None
    specialty: Optional[str] = None
    id_type: Optional[str] = None
    id_number: Optional[str] = None
    license_number: Optional[str] = None


@dataclass
class ParsedImport:
    received: int = 0
    rows: list = field(default_factory=list)
    malformed: list = field(default_factory=list)
    duplicates: list = field(default_factory=list)


def parse_date(value: str) -> Optional[date]:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _canonical_record(raw: dict) -> dict:
    record = {}
    for key, value in raw.items():
        if key is None:
            # cells beyond the header width
            continue
        canonical = HEADER_ALIASES.get(key.strip().lower())
        if canonical and canonical not in record:
            record[canonical] = (value or "").strip()
    return record


def _build_row(line: int, record: dict) -> tuple[Optional[ImportRow], Optional[ImportIssue]]:
    email = record.get("email", "").lower()
    missing = [col for col in REQUIRED_COLUMNS if not record.get(col)]
    if missing:
        return None, ImportIssue(
            email=email or None,
            line=line,
            error=f"Missing required columns: {', '.join(missing)}",
        )

    role = normalize_role(record["role"])
    if role is None:
        return None, ImportIssue(email=email, line=line, error=f"Unknown role: {record['role']}")

    status = UserStatus.PENDING
    if record.get("status"):
        status = normalize_status(record["status"])
        if status is None:
            return None, ImportIssue(email=email, line=line, error=f"Unknown status: {record['status']}")

    birth = None
    if record.get("date_of_birth"):
        birth = parse_date(record["date_of_birth"])
        if birth is None:
            return None, ImportIssue(
                email=email, line=line, error=f"Invalid date_of_birth: {record['date_of_birth']}"
            )

    row = ImportRow(
        line=line,
        email=email,
        fullname=record["fullname"],
        role=role,
        status=status,
        password=record.get("password") or None,
        phone=record.get("phone") or None,
        date_of_birth=birth,
        department=record.get("department") or None,
        specialty=record.get("specialty") or None,
        id_type=normalize_id_type(record.get("id_type")),
        id_number=record.get("id_number") or None,
        license_number=record.get("license_number") or None,
    )
    return row, None


def parse_import_file(content: bytes) -> ParsedImport:
    """Split an uploaded file into candidate rows, malformed rows and in-file duplicates.

    Raises ImportFileError when the file is empty, holds no data rows or is
    not readable as CSV.
    """
    if not content or not content.strip():
        raise ImportFileError(EMPTY_OR_MALFORMED)

    try:
        reader = csv.DictReader(io.StringIO(_decode(content)))
        if not reader.fieldnames:
            raise ImportFileError(EMPTY_OR_MALFORMED)
        parsed = _read_rows(reader)
    except csv.Error as e:
        raise ImportFileError(EMPTY_OR_MALFORMED, {"error": str(e)})

    if parsed.received == 0:
        raise ImportFileError(EMPTY_OR_MALFORMED)
    return parsed


def _read_rows(reader: csv.DictReader) -> ParsedImport:
    parsed = ParsedImport()
    seen = set()
    for raw in reader:
        # header is line 1
        line = reader.line_num
        record = _canonical_record(raw)
        if not any(record.values()):
            continue
        parsed.received += 1

        row, issue = _build_row(line, record)
        if issue is not None:
            parsed.malformed.append(issue)
            continue
        if row.email in seen:
            parsed.duplicates.append(
                ImportIssue(email=row.email, line=line, error="Email duplicated in the CSV file")
            )
            continue
        seen.add(row.email)
        parsed.rows.append(row)
    return parsed
