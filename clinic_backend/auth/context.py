from dataclasses import dataclass

from clinic_backend.models.user import (
    ADMIN_ROLE,
    PATIENT_ROLE,
    PROFESSIONAL_ROLE,
    STAFF_ROLES,
)


@dataclass(frozen=True)
class CallerContext:
    """Identity and role of the caller, resolved before any core operation."""

    user_id: int
    role: str
    patient_id: int | None = None
    professional_id: int | None = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def is_patient(self) -> bool:
        return self.role == PATIENT_ROLE

    @property
    def is_professional(self) -> bool:
        return self.role == PROFESSIONAL_ROLE
