from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional


class PatientUser(BaseModel):
    email: str
    fullname: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    address: Optional[str] = None

    class Config:
        from_attributes = True


class PatientResponse(BaseModel):
    id: str
    user_id: str
    fullname: Optional[str] = None
    document_number: Optional[str] = None
    document_type: Optional[str] = None
    birth_date: Optional[date] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[PatientUser] = None

    class Config:
        from_attributes = True


class PatientListResponse(BaseModel):
    patients: list[PatientResponse]
    total: int
    pages: int
    page: int
    page_size: int


# Fields owned by the patient record and by the user account. Shared
# demographics (phone, age, gender, address) are written to both.
PATIENT_FIELDS = ("document_number", "document_type", "birth_date", "age", "gender", "phone", "address", "status")
USER_FIELDS = ("fullname", "email", "phone", "date_of_birth", "age", "gender", "address")


class PatientUpdate(BaseModel):
    document_number: Optional[str] = Field(None, alias="documentNumber")
    document_type: Optional[str] = Field(None, alias="documentType")
    birth_date: Optional[date] = Field(None, alias="birthDate")
    age: Optional[int] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    status: Optional[str] = None
    fullname: Optional[str] = None
    email: Optional[str] = None
    date_of_birth: Optional[date] = None

    class Config:
        populate_by_name = True

    def split(self) -> tuple[dict, dict]:
        """Return (patient_changes, user_changes) for the fields the caller actually sent."""
        sent = self.model_dump(exclude_unset=True)
        patient = {k: v for k, v in sent.items() if k in PATIENT_FIELDS}
        user = {k: v for k, v in sent.items() if k in USER_FIELDS}
        return patient, user
