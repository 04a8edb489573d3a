"""
Storage access for users and their role records.

Write helpers commit immediately: the import workflow relies on every row
(and every step of a row) being persisted on its own, so that a failure later
in the batch never takes earlier rows with it.
"""
from typing import Iterable, Optional
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from user_management.models import Department, PatientProfile, Specialty, User, UserDepartmentRole
from user_management.roles import norm_upper


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def rollback(self, *keep) -> None:
        """Roll back the failed write and reload the instances the caller still holds."""
        await self.session.rollback()
        for instance in keep:
            await self.session.refresh(instance)

    async def _persist(self, instance):
        self.session.add(instance)
        await self.session.commit()
        await self.session.refresh(instance)
        return instance

    # Users

    async def existing_emails(self, emails: Iterable[str]) -> set:
        emails = list(emails)
        if not emails:
            return set()
        result = await self.session.execute(select(User.email).where(User.email.in_(emails)))
        return set(result.scalars().all())

    async def find_conflict(self, email: str, id_number: Optional[str] = None) -> Optional[User]:
        """First user holding the given email or identification number."""
        conditions = [User.email == email]
        if id_number:
            conditions.append(User.id_number == id_number)
        result = await self.session.execute(select(User).where(or_(*conditions)).limit(1))
        return result.scalar_one_or_none()

    async def email_taken(self, email: str, exclude_user_id: str) -> bool:
        found = await self.session.scalar(
            select(User.id).where(User.email == email, User.id != exclude_user_id)
        )
        return found is not None

    async def get_user(self, user_id: str, with_roles: bool = False) -> Optional[User]:
        query = select(User).where(User.id == user_id)
        if with_roles:
            query = query.options(selectinload(User.dept_roles))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create_user(self, **fields) -> User:
        return await self._persist(User(**fields))

    async def update_user(self, user: User, **fields) -> User:
        for key, value in fields.items():
            setattr(user, key, value)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def delete_user(self, user_id: str) -> None:
        await self.session.execute(delete(UserDepartmentRole).where(UserDepartmentRole.user_id == user_id))
        await self.session.execute(delete(PatientProfile).where(PatientProfile.user_id == user_id))
        await self.session.execute(delete(User).where(User.id == user_id))
        await self.session.commit()

    # Patients

    async def create_patient_profile(self, **fields) -> PatientProfile:
        return await self._persist(PatientProfile(**fields))

    # Departments and specialties

    async def get_department(self, department_id: str) -> Optional[Department]:
        return await self.session.get(Department, department_id)

    async def get_specialty(self, specialty_id: str) -> Optional[Specialty]:
        return await self.session.get(Specialty, specialty_id)

    async def get_or_create_department(self, name: Optional[str]) -> Optional[Department]:
        normalized = norm_upper(name)
        if not normalized:
            return None
        department = await self.session.scalar(
            select(Department).where(func.upper(Department.name) == normalized).limit(1)
        )
        if department is None:
            department = await self._persist(Department(name=normalized))
        return department

    async def get_or_create_specialty(self, name: Optional[str], department_id: Optional[str]) -> Optional[Specialty]:
        """Look up a specialty by name; create it only under a known department."""
        normalized = norm_upper(name)
        if not normalized:
            return None
        specialty = await self.session.scalar(
            select(Specialty).where(func.upper(Specialty.name) == normalized).limit(1)
        )
        if specialty is None:
            if not department_id:
                return None
            specialty = await self._persist(Specialty(name=normalized, department_id=department_id))
        return specialty

    # Department roles

    async def create_dept_role(
        self,
        user_id: str,
        department_id: str,
        role: str,
        specialty_id: Optional[str] = None,
    ) -> UserDepartmentRole:
        return await self._persist(
            UserDepartmentRole(
                user_id=user_id,
                department_id=department_id,
                specialty_id=specialty_id,
                role=role,
            )
        )

    async def update_dept_roles(self, user_id: str, department_id: Optional[str], specialty_id: Optional[str]) -> None:
        result = await self.session.execute(
            select(UserDepartmentRole).where(UserDepartmentRole.user_id == user_id)
        )
        for link in result.scalars().all():
            if department_id:
                link.department_id = department_id
            if specialty_id:
                link.specialty_id = specialty_id
        await self.session.commit()
