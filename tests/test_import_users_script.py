import pytest
from sqlalchemy import func, select
from scripts.import_users import import_users, user_from_record
from user_management.models import User


def test_user_from_record_maps_old_names():
    user = user_from_record(
        {"id": 42, "email": " Ana@Example.com", "name": "Ana", "role": "PACIENTE", "dateOfBirth": "1990-05-01T00:00:00Z"},
        "hash",
        "ACTIVE",
    )
    assert user.id == "42"
    assert user.email == "ana@example.com"
    assert user.fullname == "Ana"
    assert user.role == "PATIENT"
    assert user.status == "ACTIVE"
    assert user.password == "hash"
    assert str(user.date_of_birth) == "1990-05-01"


@pytest.mark.asyncio
async def test_import_skips_existing_and_incomplete_entries(session, make_user):
    await make_user("ana@example.com")
    records = [
        {"email": "ana@example.com", "fullname": "Ana"},
        {"email": "bea@example.com", "fullname": "Bea", "role": "MEDICO", "status": "PENDING"},
        {"fullname": "No Email"},
    ]

    summary = await import_users(session, records, "hash")

    assert summary == {"imported": 1, "skipped": 2}
    assert await session.scalar(select(func.count()).select_from(User)) == 2
    bea = await session.scalar(select(User).where(User.email == "bea@example.com"))
    assert bea.role == "DOCTOR"
    assert bea.status == "PENDING"
