from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import EnrollmentStatus
from .model import Class, Enrollment


class ClassRepository(Protocol):
    """Classes and the enrollments table they derive their rosters from.

    Session state columns are written through SessionRepository.
    """

    def create_class(
        self,
        *,
        class_id: str,
        name: str,
        description: str,
        created_by: str,
        creator_email: str,
        created_at: datetime,
        password_hash: Optional[str],
    ) -> None:
        raise NotImplementedError

    def get_by_id(self, class_id: str) -> Optional[Class]:
        raise NotImplementedError

    def list_all(self) -> Sequence[Class]:
        raise NotImplementedError

    def delete_inactive(self, class_id: str) -> bool:
        """Delete the class and its records unless a session is running."""
        raise NotImplementedError

    def get_enrollment(self, student_id: str) -> Optional[Enrollment]:
        raise NotImplementedError

    def add_enrollment(
        self, *, student_id: str, class_id: str, status: EnrollmentStatus, requested_at: datetime
    ) -> bool:
        """False when the student already holds an enrollment anywhere."""
        raise NotImplementedError

    def set_enrollment_status(
        self, *, student_id: str, class_id: str, status: EnrollmentStatus, decided_at: datetime
    ) -> bool:
        raise NotImplementedError

    def remove_enrollment(self, *, student_id: str, class_id: str) -> bool:
        raise NotImplementedError
