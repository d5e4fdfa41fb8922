from __future__ import annotations

from typing import Any, Iterable, Optional, Protocol, Sequence

from .model import User

# Columns callers may change through set_user_field.
MUTABLE_USER_FIELDS = frozenset(
    {"display_name", "roll_number", "is_admin", "device_id", "selected_class_id", "is_active"}
)


class UserRepository(Protocol):
    """Repository interface for the user directory.

    Note (DIP): the service layer depends on this interface, not on a concrete DB.
    """

    def get_by_id(self, user_id: str) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def get_many(self, user_ids: Iterable[str]) -> Sequence[User]:
        raise NotImplementedError

    def create_user(
        self,
        *,
        email: str,
        display_name: str,
        roll_number: str,
        password_hash: str,
        is_admin: bool = False,
    ) -> str:
        raise NotImplementedError

    def set_user_field(self, user_id: str, field: str, value: Any) -> bool:
        raise NotImplementedError
