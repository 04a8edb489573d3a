import re
import secrets
from datetime import date, datetime, timedelta
from typing import Optional, Tuple
import bcrypt
from user_management.roles import UserStatus

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_AGE, MAX_AGE = 0, 100


def hash_password(plain: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def is_email_valid(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email))


def is_password_strong(password: Optional[str]) -> bool:
    """At least 8 characters with an upper-case letter, a lower-case letter and a digit."""
    if not password or len(password) < 8:
        return False
    return (
        any(c.isupper() for c in password)
        and any(c.islower() for c in password)
        and any(c.isdigit() for c in password)
    )


def calculate_age(birth_date: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    had_birthday = (today.month, today.day) >= (birth_date.month, birth_date.day)
    return today.year - birth_date.year - (0 if had_birthday else 1)


def is_valid_age(age: Optional[int]) -> bool:
    return age is not None and MIN_AGE <= age <= MAX_AGE


def generate_verification_code() -> str:
    """Six-digit numeric code, never starting with 0."""
    return str(100000 + secrets.randbelow(900000))


def build_verification(
    status: UserStatus,
    now: datetime,
    ttl_hours: int = 1,
) -> Tuple[Optional[str], Optional[datetime]]:
    """Verification code and expiry for a new account: only PENDING accounts get one."""
    if status != UserStatus.PENDING:
        return None, None
    return generate_verification_code(), now + timedelta(hours=ttl_hours)
