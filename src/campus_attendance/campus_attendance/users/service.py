from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from ..common.validators import require_min_length, require_non_empty
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DeviceMismatchError,
    NotFoundError,
    ValidationError,
)
from .model import User
from .repository import UserRepository

logger = logging.getLogger(__name__)


class AuthService:
    """Use case: authenticate a user and enforce the device binding."""

    def __init__(self, users: UserRepository):
        self._users = users

    def authenticate(self, email: str, password: str, device_id: Optional[str] = None) -> User:
        user = self._users.get_by_email((email or "").strip().lower())
        if not user or not user.is_active:
            raise AuthenticationError("Invalid email or password")

        try:
            ok = check_password_hash(user.password_hash, password or "")
        except (TypeError, ValueError):
            # placeholder or corrupted hashes
            ok = False

        if not ok:
            raise AuthenticationError("Invalid email or password")

        device_id = (device_id or "").strip() or None
        if user.is_admin:
            return user

        if not device_id:
            raise AuthenticationError("A device identifier is required")

        if user.device_id is None:
            self._users.set_user_field(user.user_id, "device_id", device_id)
            logger.info("Bound device for user %s", user.user_id)
            return replace(user, device_id=device_id)

        if user.device_id != device_id:
            logger.warning("Device mismatch for user %s", user.user_id)
            raise DeviceMismatchError("This account is registered to a different device")

        return user


class UserService:
    """Use case: manage accounts (admin)."""

    def __init__(self, users: UserRepository):
        self._users = users

    def get_user(self, user_id: str) -> User:
        user = self._users.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def create_account(
        self,
        *,
        email: str,
        password: str,
        display_name: str,
        roll_number: str = "",
        is_admin: bool = False,
    ) -> str:
        email = require_non_empty(email, "Email").lower()
        display_name = require_non_empty(display_name, "Name")
        require_min_length(password, "Password", 6)

        if "@" not in email:
            raise ValidationError("Email is not valid")
        if self._users.get_by_email(email):
            raise ValidationError("Email is already registered")

        return self._users.create_user(
            email=email,
            display_name=display_name,
            roll_number=(roll_number or "").strip(),
            password_hash=generate_password_hash(password),
            is_admin=bool(is_admin),
        )

    def reset_device(self, *, actor: User, user_id: str) -> None:
        if not actor.is_admin:
            raise AuthorizationError("Only administrators can reset devices")
        self.get_user(user_id)
        self._users.set_user_field(user_id, "device_id", None)
        logger.info("Device binding reset for user %s by %s", user_id, actor.user_id)

    def set_admin(self, *, actor: User, user_id: str, is_admin: bool) -> None:
        if not actor.is_admin:
            raise AuthorizationError("Only administrators can change roles")
        if actor.user_id == user_id and not is_admin:
            raise ValidationError("You cannot remove your own admin role")
        self.get_user(user_id)
        self._users.set_user_field(user_id, "is_admin", bool(is_admin))
        if is_admin:
            # admins are not device-bound
            self._users.set_user_field(user_id, "device_id", None)
        logger.info("Admin flag for user %s set to %s by %s", user_id, bool(is_admin), actor.user_id)

    def set_user_field(self, user_id: str, field: str, value: Any) -> None:
        if not self._users.set_user_field(user_id, field, value):
            raise NotFoundError("User not found")
