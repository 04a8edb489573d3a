"""Single-user writes: creation, profile and status changes, password changes, deletion."""
import logging
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from user_management.config import Settings
from user_management.exceptions import (
    AffiliationError,
    InvalidTransitionError,
    PermissionDeniedError,
    UserNotFoundError,
    UserValidationError,
    WrongRoleError,
)
from user_management.models import User
from user_management.roles import UserRole, UserStatus, can_transition, norm_upper, normalize_role, normalize_status
from user_management.schemas.user import ClinicianUpdate, UserBase, UserCreate, UserSummary
from user_management.services.audit_service import AuditClient
from user_management.services.credentials import (
    calculate_age,
    hash_password,
    is_email_valid,
    is_password_strong,
    is_valid_age,
    verify_password,
)
from user_management.services.organization_service import OrganizationClient
from user_management.services.user_repository import UserRepository

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_IMAGE = "/uploads/profile-pictures/default-avatar.png"
CLINICIAN_FIELDS = ("fullname", "email", "phone", "address", "city", "gender")


def snapshot(user: User) -> dict:
    return UserSummary.model_validate(user).model_dump()


class UserService:
    def __init__(
        self,
        repository: UserRepository,
        organization: OrganizationClient,
        audit: AuditClient,
        settings: Settings,
    ):
        self.repository = repository
        self.organization = organization
        self.audit = audit
        self.settings = settings

    async def _validated_fields(self, data: UserBase, password: str) -> dict:
        email = data.email.strip().lower()
        if not is_email_valid(email):
            raise UserValidationError("Invalid email address")
        if not is_password_strong(password):
            raise UserValidationError(
                "Password must have at least 8 characters, an uppercase letter, a lowercase letter and a number"
            )
        age = calculate_age(data.date_of_birth)
        if not is_valid_age(age):
            raise UserValidationError("Age must be between 0 and 100 years")

        existing = await self.repository.find_conflict(email, data.id_number)
        if existing is not None:
            field = "email" if existing.email == email else "identification number"
            raise UserValidationError(f"The {field} is already registered")

        fields = {
            "email": email,
            "fullname": data.fullname.strip(),
            "password": hash_password(password, self.settings.bcrypt_rounds),
            "id_number": data.id_number.strip(),
            "id_type": norm_upper(data.id_type),
            "date_of_birth": data.date_of_birth,
            "age": age,
            "profile_image": DEFAULT_PROFILE_IMAGE,
        }
        if data.gender:
            fields["gender"] = norm_upper(data.gender)
        if data.blood_type:
            fields["blood_type"] = norm_upper(data.blood_type)
        for optional in ("phone", "address", "city"):
            value = getattr(data, optional)
            if value:
                fields[optional] = value
        return fields

    async def create_user(self, data: UserCreate, actor, authorization: str = "") -> User:
        """Create any kind of account on behalf of an administrator."""
        role = normalize_role(data.role)
        if role is None:
            raise UserValidationError("Invalid role")
        fields = await self._validated_fields(data, data.password)
        user = await self.repository.create_user(role=role.value, status=UserStatus.PENDING.value, **fields)

        if role == UserRole.PATIENT:
            await self._create_patient_profile(user)
        elif role == UserRole.DOCTOR:
            if not data.specialty_id:
                logger.warning("Doctor %s created without specialtyId; no affiliation", user.email)
            else:
                specialty = await self.repository.get_specialty(data.specialty_id)
                if specialty is None or not specialty.department_id:
                    logger.warning("specialtyId %s not found; doctor %s has no affiliation", data.specialty_id, user.email)
                else:
                    await self._affiliate(user, role, specialty.department_id, specialty.id, authorization)
        elif role == UserRole.NURSE:
            if not data.department_id:
                logger.warning("Nurse %s created without departmentId; no affiliation", user.email)
            elif await self.repository.get_department(data.department_id) is None:
                logger.warning("departmentId %s not found; nurse %s has no affiliation", data.department_id, user.email)
            else:
                await self._affiliate(user, role, data.department_id, None, authorization)

        await self.audit.log_create("User", snapshot(user), actor, f"User {user.email} created by administrator")
        return user

    async def create_clinician(
        self,
        role: UserRole,
        data: UserBase,
        password: str,
        actor,
        authorization: str = "",
        specialty_id: Optional[str] = None,
        department_id: Optional[str] = None,
    ) -> User:
        """Create a doctor (department derived from the specialty) or a nurse.

        The account is kept even when the organization service refuses the
        affiliation; that case is raised as AffiliationError after the fact.
        """
        if role == UserRole.DOCTOR:
            specialty = await self.repository.get_specialty(specialty_id)
            if specialty is None:
                raise UserNotFoundError("The specified specialty does not exist")
            if not specialty.department_id:
                raise UserValidationError("The specialty is not attached to a department")
            department_id = specialty.department_id
        elif await self.repository.get_department(department_id) is None:
            raise UserNotFoundError("The specified department does not exist")

        fields = await self._validated_fields(data, password)
        status = UserStatus.PENDING if role == UserRole.DOCTOR else UserStatus.ACTIVE
        user = await self.repository.create_user(role=role.value, status=status.value, **fields)

        await self.repository.create_dept_role(user.id, department_id, role.value, specialty_id)
        result = await self.organization.create_affiliation(
            user.id, role.value, department_id, specialty_id, authorization
        )
        if result.failed:
            raise AffiliationError(
                f"{role.value.title()} created, but the affiliation failed in the organization service",
                {"user_id": user.id, "error": result.detail},
            )

        await self.audit.log_create("User", snapshot(user), actor, f"{role.value.title()} {user.email} created")
        return user

    async def _create_patient_profile(self, user: User) -> None:
        try:
            await self.repository.create_patient_profile(
                user_id=user.id,
                fullname=user.fullname,
                document_number=user.id_number,
                document_type=user.id_type,
                birth_date=user.date_of_birth,
                age=user.age,
                gender=user.gender or "NOT DEFINED",
                phone=user.phone or "",
                address=user.address or "",
                status=UserStatus.ACTIVE.value,
            )
        except SQLAlchemyError as e:
            await self.repository.rollback(user)
            logger.error("Patient profile for %s not created: %s", user.email, e)

    async def _affiliate(
        self,
        user: User,
        role: UserRole,
        department_id: str,
        specialty_id: Optional[str],
        authorization: str,
    ) -> None:
        try:
            await self.repository.create_dept_role(user.id, department_id, role.value, specialty_id)
        except SQLAlchemyError as e:
            await self.repository.rollback(user)
            logger.error("Department link for %s failed: %s", user.email, e)
            return
        result = await self.organization.create_affiliation(
            user.id, role.value, department_id, specialty_id, authorization
        )
        if result.failed:
            logger.error("[ORG] Affiliation for %s %s failed: %s", role.value, user.email, result.detail)

    async def get_with_role(self, user_id: str, role: UserRole, with_roles: bool = False) -> User:
        user = await self.repository.get_user(user_id, with_roles=with_roles)
        if user is None:
            raise UserNotFoundError("User not found")
        if normalize_role(user.role) != role:
            raise WrongRoleError(f"The user is not a {role.value.lower()}")
        return user

    async def update_clinician(
        self,
        user_id: str,
        role: UserRole,
        data: ClinicianUpdate,
        actor,
        authorization: str = "",
    ) -> User:
        user = await self.get_with_role(user_id, role)
        before = snapshot(user)
        changes = data.model_dump(exclude_unset=True, include=set(CLINICIAN_FIELDS))

        if changes.get("email"):
            email = changes["email"].strip().lower()
            if not is_email_valid(email):
                raise UserValidationError("Invalid email address")
            if await self.repository.email_taken(email, user.id):
                raise UserValidationError("The email is already registered")
            changes["email"] = email

        department_id = None
        if role == UserRole.DOCTOR and data.specialty_id:
            specialty = await self.repository.get_specialty(data.specialty_id)
            if specialty is None:
                raise UserValidationError("Specialty not found")
            department_id = specialty.department_id

        user = await self.repository.update_user(user, **changes)

        if department_id:
            await self.repository.update_dept_roles(user.id, department_id, data.specialty_id)
            result = await self.organization.replace_affiliation(
                user.id, role.value, department_id, data.specialty_id, authorization
            )
            if result.failed:
                logger.error("[ORG] Affiliation update for %s failed: %s", user.email, result.detail)

        await self.audit.log_update(
            "User", before, snapshot(user), actor,
            f"{role.value.title()} {before['email']} updated by {getattr(actor, 'email', '')}",
        )
        return user

    async def set_status(
        self,
        user_id: str,
        target,
        actor,
        role: Optional[UserRole] = None,
        allowed: tuple = (UserStatus.ACTIVE, UserStatus.DISABLED),
    ) -> User:
        status = normalize_status(target)
        if status is None or status not in allowed:
            raise UserValidationError(
                f"Invalid status. Must be one of: {', '.join(s.value for s in allowed)}"
            )
        if role is None:
            user = await self.repository.get_user(user_id)
            if user is None:
                raise UserNotFoundError("User not found")
        else:
            user = await self.get_with_role(user_id, role)

        current = normalize_status(user.status) or UserStatus.PENDING
        if not can_transition(current, status):
            raise InvalidTransitionError(current.value, status.value)

        before = snapshot(user)
        user = await self.repository.update_user(user, status=status.value)
        await self.audit.log_update(
            "User", before, snapshot(user), actor,
            f"User {user.email} set to {status.value} by {getattr(actor, 'email', '')}",
        )
        return user

    async def toggle_status(self, user_id: str, actor) -> User:
        user = await self.repository.get_user(user_id)
        if user is None:
            raise UserNotFoundError("User not found")
        current = normalize_status(user.status)
        if current == UserStatus.PENDING:
            raise UserValidationError(
                "The user has not verified the account yet. It cannot be activated or disabled until verification is complete."
            )
        target = UserStatus.DISABLED if current == UserStatus.ACTIVE else UserStatus.ACTIVE
        return await self.set_status(user_id, target, actor)

    async def change_password(self, user_id: str, current_password: str, new_password: str, actor) -> User:
        if not is_password_strong(new_password):
            raise UserValidationError(
                "The new password must have at least 8 characters, an uppercase letter, a lowercase letter and a number"
            )
        user = await self.repository.get_user(user_id)
        if user is None:
            raise UserNotFoundError("User not found")
        if not actor.can_manage(user_id):
            raise PermissionDeniedError("You are not allowed to perform this action")
        if not verify_password(current_password, user.password):
            raise UserValidationError("The current password is incorrect")
        if verify_password(new_password, user.password):
            raise UserValidationError("The new password must be different from the current one")

        user = await self.repository.update_user(
            user, password=hash_password(new_password, self.settings.bcrypt_rounds)
        )
        await self.audit.log_update(
            "User",
            {"id": user.id, "action": "password_change"},
            {"id": user.id, "action": "password_updated"},
            actor,
            f"Password updated for user {user.email}",
        )
        return user

    async def delete_user(self, user_id: str, actor, authorization: str = "") -> None:
        """Delete the user with its patient profile and department links, then drop remote affiliations."""
        user = await self.repository.get_user(user_id)
        if user is None:
            raise UserNotFoundError("User not found")
        before = snapshot(user)
        await self.repository.delete_user(user_id)
        logger.info("User %s and its related records were deleted", user_id)

        result = await self.organization.delete_user_affiliations(user_id, authorization)
        if result.failed:
            logger.error("[ORG] Could not delete affiliations of %s: %s", user_id, result.detail)

        await self.audit.log_delete("User", before, actor, f"User {before['email']} deleted")
