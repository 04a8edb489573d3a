from user_management.models.user import User
from user_management.models.patient import PatientProfile
from user_management.models.department import Department, Specialty
from user_management.models.user_dept_role import UserDepartmentRole

__all__ = ["User", "PatientProfile", "Department", "Specialty", "UserDepartmentRole"]
