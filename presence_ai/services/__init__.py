from .attendance import AttendanceNotAllowedError, AttendanceService, Eligibility
from .enrollment import EnrollmentResult, EnrollmentService
from .geofence import GeofenceService
from .verification import VerificationOutcome, VerificationService

__all__ = [
    "AttendanceNotAllowedError",
    "AttendanceService",
    "Eligibility",
    "EnrollmentResult",
    "EnrollmentService",
    "GeofenceService",
    "VerificationOutcome",
    "VerificationService",
]
