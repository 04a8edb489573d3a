import uuid
from sqlalchemy import Column, String, Date, Integer, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from user_management.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    fullname = Column(String(200), nullable=False)
    password = Column(String(100), nullable=False)  # bcrypt hash
    role = Column(String(20), nullable=False, index=True)  # UserRole value
    status = Column(String(20), nullable=False, default="PENDING")  # UserStatus value

    verification_code = Column(String(6))
    verification_code_expires = Column(DateTime(timezone=True))

    id_type = Column(String(5))
    id_number = Column(String(50), unique=True)
    date_of_birth = Column(Date)
    age = Column(Integer)
    gender = Column(String(20))
    phone = Column(String(30))
    address = Column(String(255))
    city = Column(String(100))
    blood_type = Column(String(5))
    profile_image = Column(String(255))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    patient_profile = relationship(
        "PatientProfile",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    dept_roles = relationship(
        "UserDepartmentRole",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserDepartmentRole.created_at.desc()",
    )
