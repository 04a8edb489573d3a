import logging
import math
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from sqlalchemy.orm import selectinload
from user_management.auth import UserPrincipal, get_current_user, require_permission
from user_management.config import Settings, get_settings
from user_management.database import get_db
from user_management.dependencies import (
    get_audit_client,
    get_bulk_import_service,
    get_organization_client,
    get_user_service,
)
from user_management.exceptions import UserManagementError
from user_management.models import Specialty, User, UserDepartmentRole
from user_management.roles import UserRole, UserStatus, norm_upper, normalize_role, normalize_status
from user_management.schemas.bulk_import import BulkImportResponse
from user_management.schemas.user import (
    ClinicianUpdate,
    DoctorCreate,
    MessageResponse,
    NurseCreate,
    PasswordUpdate,
    StatusUpdate,
    UserByRoleItem,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserSummary,
    UserWithRolesResponse,
)
from user_management.services.audit_service import AuditClient
from user_management.services.bulk_import_service import BulkImportService
from user_management.services.organization_service import OrganizationClient
from user_management.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_FIELDS = {
    "email": User.email,
    "fullname": User.fullname,
    "role": User.role,
    "createdAt": User.created_at,
    "created_at": User.created_at,
    "status": User.status,
}


@router.get("/health")
async def users_health(settings: Settings = Depends(get_settings)):
    return {"ok": True, "service": settings.service_name, "endpoint": "/api/v1/users/health"}


@router.post("", response_model=MessageResponse, status_code=201)
async def create_user(
    data: UserCreate,
    current_user: UserPrincipal = Depends(require_permission("user:create")),
    service: UserService = Depends(get_user_service),
):
    user = await service.create_user(data, current_user, current_user.authorization)
    return MessageResponse(message="User created successfully", user=UserSummary.model_validate(user))


@router.post("/doctors", response_model=MessageResponse, status_code=201)
async def create_doctor(
    data: DoctorCreate,
    current_user: UserPrincipal = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    user = await service.create_clinician(
        UserRole.DOCTOR, data, data.password, current_user, current_user.authorization,
        specialty_id=data.specialty_id,
    )
    return MessageResponse(message="Doctor created and affiliated", user=UserSummary.model_validate(user))


@router.post("/nurses", response_model=MessageResponse, status_code=201)
async def create_nurse(
    data: NurseCreate,
    current_user: UserPrincipal = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    user = await service.create_clinician(
        UserRole.NURSE, data, data.password, current_user, current_user.authorization,
        department_id=data.department_id,
    )
    return MessageResponse(message="Nurse created and affiliated", user=UserSummary.model_validate(user))


@router.post("/bulk-import", response_model=BulkImportResponse)
async def bulk_import(
    file: UploadFile = File(None),
    current_user: UserPrincipal = Depends(require_permission("user:create")),
    service: BulkImportService = Depends(get_bulk_import_service),
    settings: Settings = Depends(get_settings),
):
    if file is None:
        raise HTTPException(status_code=400, detail="Attach a CSV file in the 'file' field")
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="The uploaded file is too large")

    try:
        outcome = await service.run(content, current_user, current_user.authorization, file.filename or "")
    except UserManagementError:
        raise
    except Exception:
        # Rows committed before the failure stay committed.
        logger.exception("[IMPORT] Unexpected error")
        raise HTTPException(status_code=500, detail="Internal server error during bulk import")
    return outcome.to_response()


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    role: str = Query(""),
    specialty: str = Query(""),
    state: str = Query(""),
    status: str = Query(""),
    q: str = Query(""),
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(require_permission("user:list")),
    audit: AuditClient = Depends(get_audit_client),
):
    page_size = min(50, limit)
    order_column = SORT_FIELDS.get(sort_by, User.created_at)
    order = order_column.asc() if sort_order == "asc" else order_column.desc()

    query = select(User)
    role_value = normalize_role(role) if role else None
    if role_value:
        query = query.where(User.role == role_value.value)
    elif role:
        logger.info("Ignoring unknown role filter %r", role)

    user_state = normalize_status(state or status) if (state or status) else None
    if user_state:
        query = query.where(User.status == user_state.value)

    if q:
        query = query.where(or_(User.email.ilike(f"%{q}%"), User.fullname.ilike(f"%{q}%")))

    if specialty:
        query = query.where(
            User.dept_roles.any(UserDepartmentRole.specialty.has(Specialty.name.ilike(f"%{specialty}%")))
        )

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    query = (
        query.options(selectinload(User.dept_roles))
        .order_by(order)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)
    users = result.scalars().all()

    applied = [
        f"{name}: {value}"
        for name, value in (("role", role), ("specialty", specialty), ("state", state or status), ("search", q))
        if value
    ]
    await audit.log_view(
        "User", None, current_user,
        f"User list consulted by {current_user.email}" + (f" with filters: {', '.join(applied)}" if applied else ""),
    )

    return {
        "users": [UserWithRolesResponse.model_validate(u) for u in users],
        "pagination": {
            "total": total,
            "pages": math.ceil(total / page_size),
            "current_page": page,
            "page_size": page_size,
        },
        "filters": {
            "role": role or None,
            "specialty": specialty or None,
            "state": (state or status) or None,
            "search": q or None,
            "page": page,
            "limit": page_size,
            "sortBy": sort_by if sort_by in SORT_FIELDS else "createdAt",
            "sortOrder": "asc" if sort_order == "asc" else "desc",
        },
    }


@router.get("/by-role")
async def get_users_by_role(
    role: str = Query(""),
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
    audit: AuditClient = Depends(get_audit_client),
):
    role_value = normalize_role(role)
    if role_value is None:
        raise HTTPException(status_code=400, detail="Invalid or missing role")

    result = await db.execute(
        select(User)
        .where(User.role == role_value.value)
        .options(selectinload(User.dept_roles))
        .order_by(User.fullname)
    )
    users = result.scalars().all()

    items = []
    for u in users:
        # dept_roles is ordered newest first
        latest = u.dept_roles[0] if u.dept_roles else None
        item = UserByRoleItem.model_validate(u)
        if latest is not None:
            item.department = norm_upper(latest.department.name) if latest.department else None
            item.specialty = norm_upper(latest.specialty.name) if latest.specialty else None
        items.append(item)

    await audit.log_view("User", None, current_user, f"Users filtered by role: {role_value.value}")
    return {"users": items, "total": len(items)}


@router.get("/by-specialty")
async def get_doctors_by_specialty(
    specialty: str = Query(""),
    specialty_id: str = Query("", alias="specialtyId"),
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
    organization: OrganizationClient = Depends(get_organization_client),
    audit: AuditClient = Depends(get_audit_client),
):
    if not specialty and not specialty_id:
        raise HTTPException(status_code=400, detail="Send 'specialty' (name) or 'specialtyId'")

    lookup = await organization.list_affiliations(
        UserRole.DOCTOR.value, specialty_id or None, specialty or None, current_user.authorization
    )
    if lookup.failed:
        raise HTTPException(
            status_code=502,
            detail={"message": "Error querying doctor affiliations", "error": lookup.detail},
        )

    affiliations = lookup.data or []
    user_ids = {a["userId"] for a in affiliations if a.get("userId")}
    if not user_ids:
        return {"message": "No doctors found for the given specialty", "doctors": [], "total": 0}

    result = await db.execute(
        select(User).where(User.id.in_(user_ids), User.status == UserStatus.ACTIVE.value)
    )
    doctors = []
    for doctor in result.scalars().all():
        own = [a for a in affiliations if a.get("userId") == doctor.id]
        departments, specialties = {}, {}
        for aff in own:
            if aff.get("department"):
                departments[aff["department"]["id"]] = norm_upper(aff["department"]["name"])
            if aff.get("specialty"):
                specialties[aff["specialty"]["id"]] = norm_upper(aff["specialty"]["name"])
        doctors.append({
            **UserResponse.model_validate(doctor).model_dump(),
            "departments": [{"id": k, "name": v} for k, v in departments.items()],
            "specialties": [{"id": k, "name": v} for k, v in specialties.items()],
        })

    label = specialty or specialty_id
    await audit.log_view(
        "User", None, current_user, f"Doctors by specialty: {label} - found: {len(doctors)}"
    )
    return {
        "message": f"Doctors found for specialty: {label}",
        "doctors": doctors,
        "total": len(doctors),
        "filters": {"specialty": label, "role": UserRole.DOCTOR.value},
    }


@router.get("/doctors/{user_id}", response_model=UserWithRolesResponse)
async def get_doctor(
    user_id: str,
    current_user: UserPrincipal = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    audit: AuditClient = Depends(get_audit_client),
):
    doctor = await service.get_with_role(user_id, UserRole.DOCTOR, with_roles=True)
    await audit.log_view("User", doctor.id, current_user, f"Doctor {doctor.email} consulted")
    return UserWithRolesResponse.model_validate(doctor)


@router.get("/nurses/{user_id}", response_model=UserResponse)
async def get_nurse(
    user_id: str,
    current_user: UserPrincipal = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    audit: AuditClient = Depends(get_audit_client),
):
    nurse = await service.get_with_role(user_id, UserRole.NURSE)
    await audit.log_view("User", nurse.id, current_user, f"Nurse {nurse.email} consulted")
    return UserResponse.model_validate(nurse)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: UserPrincipal = Depends(get_current_user),
    audit: AuditClient = Depends(get_audit_client),
):
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    await audit.log_view("User", user.id, current_user, f"User {user.email} consulted")
    return UserResponse.model_validate(user)


@router.patch("/doctors/state/{user_id}", response_model=MessageResponse)
async def update_doctor_state(
    user_id: str,
    data: StatusUpdate,
    current_user: UserPrincipal = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    doctor = await service.set_status(user_id, data.status, current_user, role=UserRole.DOCTOR)
    return MessageResponse(message=f"Status updated to {doctor.status}", user=UserSummary.model_validate(doctor))


@router.patch("/nurses/state/{user_id}", response_model=MessageResponse)
async def update_nurse_state(
    user_id: str,
    data: StatusUpdate,
    current_user: UserPrincipal = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    nurse = await service.set_status(user_id, data.status, current_user, role=UserRole.NURSE)
    return MessageResponse(message=f"Status updated to {nurse.status}", user=UserSummary.model_validate(nurse))


@router.patch("/{user_id}/deactivate", response_model=MessageResponse)
async def deactivate_user(
    user_id: str,
    current_user: UserPrincipal = Depends(require_permission("user:deactivate")),
    service: UserService = Depends(get_user_service),
):
    user = await service.set_status(user_id, UserStatus.DISABLED, current_user)
    return MessageResponse(message="User deactivated", user=UserSummary.model_validate(user))


@router.patch("/{user_id}/activate", response_model=MessageResponse)
async def activate_user(
    user_id: str,
    current_user: UserPrincipal = Depends(require_permission("user:activate")),
    service: UserService = Depends(get_user_service),
):
    user = await service.set_status(user_id, UserStatus.ACTIVE, current_user)
    return MessageResponse(message="User activated", user=UserSummary.model_validate(user))


@router.patch("/{user_id}/toggle-status", response_model=MessageResponse)
async def toggle_user_status(
    user_id: str,
    current_user: UserPrincipal = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    user = await service.toggle_status(user_id, current_user)
    verb = "activated" if user.status == UserStatus.ACTIVE.value else "disabled"
    return MessageResponse(message=f"User {verb}", user=UserSummary.model_validate(user))


@router.put("/doctors/{user_id}", response_model=MessageResponse)
async def update_doctor(
    user_id: str,
    data: ClinicianUpdate,
    current_user: UserPrincipal = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    doctor = await service.update_clinician(
        user_id, UserRole.DOCTOR, data, current_user, current_user.authorization
    )
    return MessageResponse(message="Doctor updated", user=UserSummary.model_validate(doctor))


@router.put("/nurses/{user_id}", response_model=MessageResponse)
async def update_nurse(
    user_id: str,
    data: ClinicianUpdate,
    current_user: UserPrincipal = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    nurse = await service.update_clinician(
        user_id, UserRole.NURSE, data, current_user
    )
    return MessageResponse(message="Nurse updated", user=UserSummary.model_validate(nurse))


@router.put("/{user_id}/password", response_model=MessageResponse)
async def update_password(
    user_id: str,
    data: PasswordUpdate,
    current_user: UserPrincipal = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    user = await service.change_password(user_id, data.current_password, data.new_password, current_user)
    return MessageResponse(message="Password updated", user=UserSummary.model_validate(user))


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    current_user: UserPrincipal = Depends(require_permission("user:delete")),
    service: UserService = Depends(get_user_service),
):
    await service.delete_user(user_id, current_user, current_user.authorization)
    return {"deleted": True, "user_id": user_id, "message": "User and related records deleted"}
