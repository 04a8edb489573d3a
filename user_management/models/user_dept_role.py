from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from user_management.database import Base
from user_management.models.user import new_id


class UserDepartmentRole(Base):
    """Local mirror of a user's affiliation held by the organization service."""

    __tablename__ = "user_dept_roles"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    department_id = Column(String(36), ForeignKey("departments.id"), nullable=False)
    specialty_id = Column(String(36), ForeignKey("specialties.id"))
    role = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="dept_roles")
    department = relationship("Department", lazy="joined")
    specialty = relationship("Specialty", lazy="joined")
