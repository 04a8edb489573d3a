import math
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from sqlalchemy.orm import selectinload
from user_management.auth import UserPrincipal, get_current_user, require_role
from user_management.database import get_db
from user_management.models import PatientProfile, User
from user_management.roles import UserRole, UserStatus, normalize_status
from user_management.schemas.patient import PatientListResponse, PatientResponse, PatientUpdate
from user_management.services.credentials import is_email_valid

router = APIRouter()


async def _load_patient(db: AsyncSession, *conditions):
    result = await db.execute(
        select(PatientProfile).where(*conditions).options(selectinload(PatientProfile.user))
    )
    return result.scalar_one_or_none()


@router.get("/health")
async def patients_health():
    return {"ok": True, "service": "user-management-service", "endpoint": "/api/v1/users/patients/health"}


@router.get("", response_model=PatientListResponse)
async def list_patients(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    q: str = Query("", description="Search by document number, user name or email"),
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(require_role(UserRole.ADMIN)),
):
    query = select(PatientProfile).join(User, PatientProfile.user_id == User.id)
    if q:
        query = query.where(
            or_(
                PatientProfile.document_number.ilike(f"%{q}%"),
                User.fullname.ilike(f"%{q}%"),
                User.email.ilike(f"%{q}%"),
            )
        )

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    query = (
        query.options(selectinload(PatientProfile.user))
        .order_by(PatientProfile.created_at.desc())
        .offset((page - 1) * size)
        .limit(size)
    )
    result = await db.execute(query)
    patients = result.scalars().all()

    return PatientListResponse(
        patients=[PatientResponse.model_validate(p) for p in patients],
        total=total,
        pages=math.ceil(total / size),
        page=page,
        page_size=size,
    )


@router.get("/by-user/{user_id}", response_model=PatientResponse)
async def get_patient_by_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
):
    patient = await _load_patient(db, PatientProfile.user_id == user_id)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    return PatientResponse.model_validate(patient)


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(require_role(UserRole.ADMIN, UserRole.DOCTOR)),
):
    patient = await _load_patient(db, PatientProfile.id == patient_id)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    return PatientResponse.model_validate(patient)


@router.put("/{patient_id}")
async def update_patient(
    patient_id: str,
    data: PatientUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(require_role(UserRole.ADMIN, UserRole.DOCTOR, UserRole.NURSE)),
):
    patient = await _load_patient(db, PatientProfile.id == patient_id)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")

    patient_changes, user_changes = data.split()

    if "status" in patient_changes:
        status = normalize_status(patient_changes["status"])
        if status not in (UserStatus.ACTIVE, UserStatus.DISABLED):
            raise HTTPException(status_code=400, detail="Patient status must be ACTIVE or DISABLED")
        patient_changes["status"] = status.value

    if user_changes.get("email"):
        email = user_changes["email"].strip().lower()
        if not is_email_valid(email):
            raise HTTPException(status_code=400, detail="Invalid email address")
        taken = await db.scalar(select(User.id).where(User.email == email, User.id != patient.user_id))
        if taken:
            raise HTTPException(status_code=400, detail="The email is already registered")
        user_changes["email"] = email

    for key, value in patient_changes.items():
        setattr(patient, key, value)
    if "fullname" in user_changes:
        patient.fullname = user_changes["fullname"]
    for key, value in user_changes.items():
        setattr(patient.user, key, value)

    await db.flush()
    # onupdate timestamps are expired by the flush
    await db.refresh(patient, ["updated_at"])
    return {
        "message": "Patient and user updated",
        "patient": PatientResponse.model_validate(patient),
    }
