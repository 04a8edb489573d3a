from datetime import date, datetime, timedelta, timezone
from user_management.roles import UserStatus
from user_management.services.credentials import (
    build_verification,
    calculate_age,
    generate_verification_code,
    hash_password,
    is_email_valid,
    is_password_strong,
    is_valid_age,
    verify_password,
)


def test_hash_and_verify_password():
    hashed = hash_password("Secret123", rounds=4)
    assert hashed != "Secret123"
    assert verify_password("Secret123", hashed)
    assert not verify_password("secret123", hashed)


def test_verify_password_rejects_garbage_hash():
    assert not verify_password("Secret123", "not-a-bcrypt-hash")
    assert not verify_password("", "whatever")


def test_email_validation():
    assert is_email_valid("ana@example.com")
    assert not is_email_valid("ana@example")
    assert not is_email_valid("ana example@x.com")
    assert not is_email_valid(None)


def test_password_strength():
    assert is_password_strong("Secret123")
    assert not is_password_strong("Sec123")
    assert not is_password_strong("secret123")
    assert not is_password_strong("SECRET123")
    assert not is_password_strong("SecretPass")


def test_calculate_age_before_and_after_birthday():
    born = date(2000, 6, 15)
    assert calculate_age(born, today=date(2024, 6, 14)) == 23
    assert calculate_age(born, today=date(2024, 6, 15)) == 24


def test_age_range():
    assert is_valid_age(0)
    assert is_valid_age(100)
    assert not is_valid_age(101)
    assert not is_valid_age(-1)
    assert not is_valid_age(None)


def test_verification_code_is_six_digits():
    for _ in range(50):
        code = generate_verification_code()
        assert len(code) == 6
        assert code.isdigit()
        assert code[0] != "0"


def test_pending_accounts_get_code_expiring_after_ttl():
    now = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    code, expires = build_verification(UserStatus.PENDING, now, ttl_hours=1)
    assert code is not None
    assert expires - now == timedelta(hours=1)


def test_other_statuses_get_no_code():
    now = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert build_verification(UserStatus.ACTIVE, now) == (None, None)
    assert build_verification(UserStatus.DISABLED, now) == (None, None)
