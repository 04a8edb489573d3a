from sqlalchemy import Column, String, Date, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from user_management.database import Base
from user_management.models.user import new_id


class PatientProfile(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    fullname = Column(String(200))
    document_number = Column(String(50))
    document_type = Column(String(5))
    birth_date = Column(Date)
    age = Column(Integer)
    gender = Column(String(20), default="NOT DEFINED")
    phone = Column(String(30))
    address = Column(String(255))
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="patient_profile")
