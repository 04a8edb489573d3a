from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from user_management.database import Base
from user_management.models.user import new_id


class Department(Base):
    __tablename__ = "departments"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(150), unique=True, nullable=False, index=True)  # trimmed, upper-cased
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    specialties = relationship("Specialty", back_populates="department")


class Specialty(Base):
    __tablename__ = "specialties"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(150), unique=True, nullable=False, index=True)
    department_id = Column(String(36), ForeignKey("departments.id"), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    department = relationship("Department", back_populates="specialties")
