"""
Load a JSON backup of users (a list of objects) into the users table.
Run with: python -m scripts.import_users users-backup.json
Run with: python -m scripts.import_users users-backup.json --status ACTIVE

Existing ids and emails are skipped, so the script can be re-run safely.
Accounts without a password hash get the default import password.
"""

import argparse
import asyncio
import json
from datetime import date
from sqlalchemy import select, or_
from user_management.config import get_settings
from user_management.database import engine, async_session, Base
from user_management.models import User
from user_management.roles import UserRole, normalize_role, normalize_status
from user_management.services.credentials import hash_password


def _parse_birth(value):
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def user_from_record(record: dict, password_hash: str, default_status: str) -> User:
    """Map one backup entry (old ``name`` or new ``fullname`` naming) to a User row."""
    role = normalize_role(record.get("role")) or UserRole.PATIENT
    status = normalize_status(record.get("status")) or normalize_status(default_status)
    fields = {
        "email": record["email"].strip().lower(),
        "fullname": record.get("fullname") or record.get("name") or record["email"],
        "password": record.get("password") or password_hash,
        "role": role.value,
        "status": status.value,
        "id_type": record.get("id_type") or record.get("idType"),
        "id_number": record.get("id_number") or record.get("idNumber"),
        "date_of_birth": _parse_birth(record.get("date_of_birth") or record.get("dateOfBirth")),
        "phone": record.get("phone"),
        "address": record.get("address"),
        "city": record.get("city"),
    }
    if record.get("id"):
        fields["id"] = str(record["id"])
    return User(**fields)


async def import_users(session, records: list, password_hash: str, default_status: str = "ACTIVE") -> dict:
    imported, skipped = 0, 0
    for record in records:
        if not record.get("email"):
            skipped += 1
            continue
        user = user_from_record(record, password_hash, default_status)
        conditions = [User.email == user.email]
        if record.get("id"):
            conditions.append(User.id == user.id)
        existing = await session.scalar(select(User.id).where(or_(*conditions)).limit(1))
        if existing:
            skipped += 1
            continue
        session.add(user)
        imported += 1
    await session.commit()
    return {"imported": imported, "skipped": skipped}


async def main(path: str, status: str):
    with open(path, encoding="utf-8") as fh:
        records = json.load(fh)

    settings = get_settings()
    password_hash = hash_password(settings.default_import_password, settings.bcrypt_rounds)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        print(f"Importing {len(records)} users from {path}...")
        summary = await import_users(session, records, password_hash, status)

    print(f"Imported {summary['imported']} users, skipped {summary['skipped']}.")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import a JSON backup of users")
    parser.add_argument("path", help="JSON file holding a list of users")
    parser.add_argument("--status", default="ACTIVE", help="Status for entries that carry none")
    args = parser.parse_args()
    asyncio.run(main(args.path, args.status))
