"""
Role and status normalization, and the account status lifecycle.
"""
import pytest
from user_management.roles import (
    UserRole,
    UserStatus,
    can_transition,
    normalize_id_type,
    normalize_role,
    normalize_status,
)


@pytest.mark.parametrize("label, expected", [
    ("PACIENTE", UserRole.PATIENT),
    ("patient", UserRole.PATIENT),
    (" medico ", UserRole.DOCTOR),
    ("Médico", UserRole.DOCTOR),
    ("ENFERMERA", UserRole.NURSE),
    ("enfermero", UserRole.NURSE),
    ("Administrador", UserRole.ADMIN),
    ("ADMIN", UserRole.ADMIN),
])
def test_normalize_role_accepts_localized_labels(label, expected):
    assert normalize_role(label) == expected


def test_normalize_role_rejects_unknown():
    assert normalize_role("JANITOR") is None
    assert normalize_role(None) is None
    assert normalize_role("") is None


def test_normalize_status():
    assert normalize_status("active") == UserStatus.ACTIVE
    assert normalize_status("INACTIVE") == UserStatus.DISABLED
    assert normalize_status(UserStatus.PENDING) == UserStatus.PENDING
    assert normalize_status("SUSPENDED") is None


def test_normalize_id_type():
    assert normalize_id_type(" cc ") == "CC"
    assert normalize_id_type("NIT") == "NIT"
    assert normalize_id_type("SSN") is None


def test_pending_accounts_can_be_activated_or_disabled():
    assert can_transition(UserStatus.PENDING, UserStatus.ACTIVE)
    assert can_transition(UserStatus.PENDING, UserStatus.DISABLED)


def test_active_and_disabled_toggle():
    assert can_transition(UserStatus.ACTIVE, UserStatus.DISABLED)
    assert can_transition(UserStatus.DISABLED, UserStatus.ACTIVE)


def test_nothing_returns_to_pending():
    assert not can_transition(UserStatus.ACTIVE, UserStatus.PENDING)
    assert not can_transition(UserStatus.DISABLED, UserStatus.PENDING)


def test_deleted_is_terminal():
    for target in (UserStatus.PENDING, UserStatus.ACTIVE, UserStatus.DISABLED, UserStatus.DELETED):
        assert not can_transition(UserStatus.DELETED, target)


def test_setting_the_same_status_is_allowed():
    assert can_transition(UserStatus.ACTIVE, UserStatus.ACTIVE)
