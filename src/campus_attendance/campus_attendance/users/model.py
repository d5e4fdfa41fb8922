from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class User:
    """Domain entity: an account in the user directory.

    Note: Plain data object (no DB access code).
    """

    user_id: str
    email: str
    display_name: str
    roll_number: str
    password_hash: str
    is_admin: bool = False
    device_id: Optional[str] = None
    selected_class_id: Optional[str] = None
    is_active: bool = True

    @property
    def name(self) -> str:
        return self.display_name or self.email.split("@")[0]

    def public_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "email": self.email,
            "displayName": self.display_name,
            "rollNumber": self.roll_number,
            "isAdmin": self.is_admin,
            "hasDevice": bool(self.device_id),
            "selectedClassId": self.selected_class_id,
        }
