"""
Canonical user roles and lifecycle statuses.

Older clients and CSV exports use the localized labels (MEDICO, ENFERMERO,
PACIENTE, ADMINISTRADOR); every inbound role string goes through
normalize_role so the rest of the service only ever sees UserRole members.
"""

import enum
from typing import Optional


class UserRole(str, enum.Enum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    ADMIN = "ADMIN"


class UserStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"
    DELETED = "DELETED"


ROLE_ALIASES = {
    "PATIENT": UserRole.PATIENT,
    "PACIENTE": UserRole.PATIENT,
    "DOCTOR": UserRole.DOCTOR,
    "MEDICO": UserRole.DOCTOR,
    "MÉDICO": UserRole.DOCTOR,
    "NURSE": UserRole.NURSE,
    "ENFERMERO": UserRole.NURSE,
    "ENFERMERA": UserRole.NURSE,
    "ADMIN": UserRole.ADMIN,
    "ADMINISTRATOR": UserRole.ADMIN,
    "ADMINISTRADOR": UserRole.ADMIN,
}

STATUS_ALIASES = {
    "PENDING": UserStatus.PENDING,
    "ACTIVE": UserStatus.ACTIVE,
    "DISABLED": UserStatus.DISABLED,
    "INACTIVE": UserStatus.DISABLED,
    "DELETED": UserStatus.DELETED,
}

CLINICAL_ROLES = frozenset({UserRole.DOCTOR, UserRole.NURSE})

# target -> statuses it may be reached from
ALLOWED_TRANSITIONS = {
    UserStatus.ACTIVE: {UserStatus.PENDING, UserStatus.DISABLED},
    UserStatus.DISABLED: {UserStatus.PENDING, UserStatus.ACTIVE},
    UserStatus.DELETED: {UserStatus.PENDING, UserStatus.ACTIVE, UserStatus.DISABLED},
    UserStatus.PENDING: set(),
}

VALID_ID_TYPES = frozenset({"CC", "TI", "CE", "PP", "NIT"})


def norm_upper(value) -> str:
    """Trim and upper-case anything, treating None as empty."""
    if value is None:
        return ""
    return str(value).strip().upper()


def normalize_role(value) -> Optional[UserRole]:
    if isinstance(value, UserRole):
        return value
    return ROLE_ALIASES.get(norm_upper(value))


def normalize_status(value) -> Optional[UserStatus]:
    if isinstance(value, UserStatus):
        return value
    return STATUS_ALIASES.get(norm_upper(value))


def normalize_id_type(value) -> Optional[str]:
    """Return the identification type code, or None when it is not recognized."""
    code = norm_upper(value)
    return code if code in VALID_ID_TYPES else None


def can_transition(current: UserStatus, target: UserStatus) -> bool:
    if current == target:
        return current != UserStatus.DELETED
    return current in ALLOWED_TRANSITIONS[target]
