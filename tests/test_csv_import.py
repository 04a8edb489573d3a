"""
Parsing of import files: header aliases, malformed rows and in-file duplicates.
"""
from datetime import date
import pytest
from user_management.exceptions import ImportFileError
from user_management.roles import UserRole, UserStatus
from user_management.services.csv_import import parse_date, parse_import_file


def test_parses_rows_with_aliased_headers():
    content = (
        "Correo,Name,ROLE,Birth_Date,Department_Name,Specialization,id_type,id_number\n"
        " Ana@Example.com ,Ana Perez,MEDICO,1990-05-01,cardiology,Interventional,cc,123\n"
    ).encode()
    parsed = parse_import_file(content)

    assert parsed.received == 1
    row = parsed.rows[0]
    assert row.email == "ana@example.com"
    assert row.fullname == "Ana Perez"
    assert row.role == UserRole.DOCTOR
    assert row.status == UserStatus.PENDING
    assert row.date_of_birth == date(1990, 5, 1)
    assert row.department == "cardiology"
    assert row.specialty == "Interventional"
    assert row.id_type == "CC"
    assert row.id_number == "123"
    assert row.line == 2


def test_repeated_email_keeps_first_occurrence():
    content = (
        "email,fullname,role\n"
        "ana@example.com,Ana,PATIENT\n"
        "luis@example.com,Luis,PATIENT\n"
        "ANA@example.com,Ana Again,PATIENT\n"
        "ana@example.com,Ana Third,PATIENT\n"
    ).encode()
    parsed = parse_import_file(content)

    assert [r.email for r in parsed.rows] == ["ana@example.com", "luis@example.com"]
    assert [d.line for d in parsed.duplicates] == [4, 5]
    assert all(d.error == "Email duplicated in the CSV file" for d in parsed.duplicates)
    assert parsed.received == 4


def test_malformed_rows_are_reported():
    content = (
        "email,fullname,role,status,date_of_birth\n"
        "a@example.com,,PATIENT,,\n"
        "b@example.com,Bea,JANITOR,,\n"
        "c@example.com,Carl,PATIENT,SUSPENDED,\n"
        "d@example.com,Dana,PATIENT,,31-31-2000\n"
        "e@example.com,Eve,PATIENT,active,01/02/2000\n"
    ).encode()
    parsed = parse_import_file(content)

    errors = [m.error for m in parsed.malformed]
    assert errors[0] == "Missing required columns: fullname"
    assert errors[1] == "Unknown role: JANITOR"
    assert errors[2] == "Unknown status: SUSPENDED"
    assert errors[3].startswith("Invalid date_of_birth")
    assert len(parsed.rows) == 1
    assert parsed.rows[0].status == UserStatus.ACTIVE
    assert parsed.rows[0].date_of_birth == date(2000, 2, 1)


def test_blank_lines_are_ignored():
    content = b"email,fullname,role\n,,\nana@example.com,Ana,PATIENT\n"
    parsed = parse_import_file(content)
    assert parsed.received == 1


def test_latin1_file_is_decoded():
    content = "email,fullname,role\nana@example.com,Ana Muñoz,PACIENTE\n".encode("latin-1")
    parsed = parse_import_file(content)
    assert parsed.rows[0].fullname == "Ana Muñoz"


@pytest.mark.parametrize("content", [b"", b"   \n", b"email,fullname,role\n"])
def test_empty_file_is_rejected(content):
    with pytest.raises(ImportFileError) as exc:
        parse_import_file(content)
    assert exc.value.status_code == 400


def test_oversized_field_is_rejected_as_bad_file():
    content = b"email,fullname,role\na@example.com," + b"x" * 200000 + b",PATIENT\n"
    with pytest.raises(ImportFileError) as exc:
        parse_import_file(content)
    assert exc.value.status_code == 400
    assert "field larger than field limit" in exc.value.details["error"]


def test_parse_date_formats():
    assert parse_date("2000-02-01") == date(2000, 2, 1)
    assert parse_date("01/02/2000") == date(2000, 2, 1)
    assert parse_date("2000/02/01") == date(2000, 2, 1)
    assert parse_date("Feb 1 2000") is None
