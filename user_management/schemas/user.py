from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional


class UserBase(BaseModel):
    email: str
    fullname: str
    id_number: str
    id_type: str
    date_of_birth: date
    gender: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    blood_type: Optional[str] = None

    class Config:
        populate_by_name = True


class UserCreate(UserBase):
    password: str
    role: str
    specialty_id: Optional[str] = Field(None, alias="specialtyId")
    department_id: Optional[str] = Field(None, alias="departmentId")


class DoctorCreate(UserBase):
    password: str
    specialty_id: str = Field(..., alias="specialtyId")


class NurseCreate(UserBase):
    password: str
    department_id: str = Field(..., alias="departmentId")


class ClinicianUpdate(BaseModel):
    fullname: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    gender: Optional[str] = None
    specialty_id: Optional[str] = Field(None, alias="specialtyId")

    class Config:
        populate_by_name = True


class StatusUpdate(BaseModel):
    status: str


class PasswordUpdate(BaseModel):
    current_password: str = Field(..., alias="currentPassword")
    new_password: str = Field(..., alias="newPassword")

    class Config:
        populate_by_name = True


class NamedRef(BaseModel):
    id: str
    name: str

    class Config:
        from_attributes = True


class DeptRoleResponse(BaseModel):
    id: str
    role: str
    department_id: str
    specialty_id: Optional[str] = None
    department: Optional[NamedRef] = None
    specialty: Optional[NamedRef] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    id: str
    email: str
    fullname: str
    role: str
    status: str

    class Config:
        from_attributes = True


class UserResponse(UserSummary):
    id_number: Optional[str] = None
    id_type: Optional[str] = None
    date_of_birth: Optional[date] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    blood_type: Optional[str] = None
    created_at: Optional[datetime] = None


class UserWithRolesResponse(UserResponse):
    dept_roles: list[DeptRoleResponse] = []


class UserByRoleItem(UserResponse):
    department: Optional[str] = None
    specialty: Optional[str] = None


class Pagination(BaseModel):
    total: int
    pages: int
    current_page: int
    page_size: int


class UserListResponse(BaseModel):
    users: list[UserWithRolesResponse]
    pagination: Pagination
    filters: dict


class MessageResponse(BaseModel):
    message: str
    user: Optional[UserSummary] = None
