from school_roster.models.student import Student, StudentStatus, Gender
from school_roster.models.user import User, UserRole
from school_roster.models.attendance import Attendance, AttendanceStatus
from school_roster.models.fee import Fee, FeeStatus, FeeType, PaymentMethod

__all__ = [
    "Student", "StudentStatus", "Gender", "User", "UserRole",
    "Attendance", "AttendanceStatus", "Fee", "FeeStatus", "FeeType", "PaymentMethod",
]
