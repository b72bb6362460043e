from app.models.user import User, UserRole, UserRoleAssignment, Profile
from app.models.patient import Patient
from app.models.measurement import Measurement, MeasurementCategory
from app.models.appointment import Appointment, AppointmentStatus, TherapyPlan
from app.models.verification import DoctorVerification, VerificationStatus

__all__ = [
    "User",
    "UserRole",
    "UserRoleAssignment",
    "Profile",
    "Patient",
    "Measurement",
    "MeasurementCategory",
    "Appointment",
    "AppointmentStatus",
    "TherapyPlan",
    "DoctorVerification",
    "VerificationStatus",
]
