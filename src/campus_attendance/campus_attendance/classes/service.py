from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

from ..common.datetime_utils import now_utc
from ..common.validators import require_min_length, require_non_empty
from ..core.enums import EnrollmentStatus
from ..core.exceptions import AuthorizationError, NotFoundError, SessionStateViolation, ValidationError
from ..users.model import User
from ..users.repository import UserRepository
from .model import Class
from .repository import ClassRepository

logger = logging.getLogger(__name__)


class ClassService:
    """Use cases: class lifecycle, admin access and exclusive enrollment."""

    def __init__(self, classes: ClassRepository, users: UserRepository):
        self._classes = classes
        self._users = users

    @staticmethod
    def _require_admin(actor: User) -> None:
        if not actor.is_admin:
            raise AuthorizationError("Administrator access required")

    def get_class(self, class_id: str) -> Class:
        cls = self._classes.get_by_id(class_id)
        if not cls:
            raise NotFoundError("Class not found")
        return cls

    def create_class(
        self,
        *,
        actor: User,
        name: str,
        description: str = "",
        password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Class:
        self._require_admin(actor)
        name = require_non_empty(name, "Class name")
        password_hash = None
        if password:
            require_min_length(password, "Class password", 4)
            password_hash = generate_password_hash(password)

        class_id = uuid.uuid4().hex
        self._classes.create_class(
            class_id=class_id,
            name=name,
            description=(description or "").strip(),
            created_by=actor.user_id,
            creator_email=actor.email,
            created_at=now or now_utc(),
            password_hash=password_hash,
        )
        logger.info("Class %s (%s) created by %s", class_id, name, actor.user_id)
        return self.get_class(class_id)

    def list_for_admin(self, actor: User) -> Sequence[Class]:
        self._require_admin(actor)
        return self._classes.list_all()

    def can_manage(self, actor: User, cls: Class, granted: Iterable[str] = ()) -> bool:
        """Creators manage their classes; other admins need a granted password check."""
        if not actor.is_admin:
            return False
        return cls.is_owned_by(actor.user_id) or cls.class_id in set(granted)

    def require_manage(self, actor: User, class_id: str, granted: Iterable[str] = ()) -> Class:
        cls = self.get_class(class_id)
        if not self.can_manage(actor, cls, granted):
            raise AuthorizationError("You do not have access to this class")
        return cls

    def verify_admin_access(self, actor: User, class_id: str, password: Optional[str] = None) -> Class:
        self._require_admin(actor)
        cls = self.get_class(class_id)
        if cls.is_owned_by(actor.user_id):
            return cls
        if not cls.password_hash:
            raise AuthorizationError("This class is not shared with other administrators")
        try:
            ok = check_password_hash(cls.password_hash, password or "")
        except (TypeError, ValueError):
            ok = False
        if not ok:
            logger.warning("Rejected class password for %s by %s", class_id, actor.user_id)
            raise AuthorizationError("Incorrect class password")
        return cls

    def select_class(self, actor: User, class_id: Optional[str]) -> None:
        self._require_admin(actor)
        if class_id is not None:
            self.get_class(class_id)
        self._users.set_user_field(actor.user_id, "selected_class_id", class_id)

    def class_for_student(self, student: User) -> Optional[Tuple[Class, EnrollmentStatus]]:
        enrollment = self._classes.get_enrollment(student.user_id)
        if not enrollment:
            return None
        cls = self._classes.get_by_id(enrollment.class_id)
        if not cls:
            return None
        return cls, enrollment.status

    def request_enrollment(self, student: User, class_id: str, *, now: Optional[datetime] = None) -> None:
        if student.is_admin:
            raise ValidationError("Administrators cannot join classes")
        self.get_class(class_id)

        existing = self._classes.get_enrollment(student.user_id)
        if existing:
            if existing.class_id == class_id:
                raise ValidationError("You already requested to join this class")
            raise ValidationError("You are already enrolled in another class")

        added = self._classes.add_enrollment(
            student_id=student.user_id,
            class_id=class_id,
            status=EnrollmentStatus.PENDING,
            requested_at=now or now_utc(),
        )
        if not added:
            # lost a race with a concurrent request
            raise ValidationError("You are already enrolled in another class")
        logger.info("Student %s requested to join %s", student.user_id, class_id)

    def decide_enrollment(
        self,
        actor: User,
        class_id: str,
        student_id: str,
        *,
        approve: bool,
        granted: Iterable[str] = (),
        now: Optional[datetime] = None,
    ) -> None:
        cls = self.require_manage(actor, class_id, granted)
        if student_id not in cls.pending_students:
            raise NotFoundError("No pending request from this student")

        if approve:
            self._classes.set_enrollment_status(
                student_id=student_id,
                class_id=class_id,
                status=EnrollmentStatus.APPROVED,
                decided_at=now or now_utc(),
            )
        else:
            self._classes.remove_enrollment(student_id=student_id, class_id=class_id)
        logger.info("Enrollment of %s in %s %s", student_id, class_id, "approved" if approve else "rejected")

    def remove_student(self, actor: User, class_id: str, student_id: str, *, granted: Iterable[str] = ()) -> None:
        self.require_manage(actor, class_id, granted)
        if not self._classes.remove_enrollment(student_id=student_id, class_id=class_id):
            raise NotFoundError("Student is not enrolled in this class")
        logger.info("Student %s removed from %s", student_id, class_id)

    def delete_class(self, actor: User, class_id: str) -> None:
        self._require_admin(actor)
        cls = self.get_class(class_id)
        if not cls.is_owned_by(actor.user_id):
            raise AuthorizationError("Only the creator can delete a class")
        if cls.is_active or not self._classes.delete_inactive(class_id):
            raise SessionStateViolation("Cannot delete a class while a session is active")
        logger.info("Class %s deleted by %s", class_id, actor.user_id)

    def roster(self, cls: Class) -> List[User]:
        return list(self._users.get_many(cls.students))
