from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .model import User


class UserRepository(Protocol):
    """User directory port.

    Note (DIP): services depend on this interface, never on a concrete DB.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_username(self, username: str) -> Optional[User]:
        raise NotImplementedError

    def list_active(self) -> Sequence[User]:
        raise NotImplementedError

    def list_admin_ids(self) -> Sequence[int]:
        """Active administrators, the recipients of attendance alerts."""

        raise NotImplementedError

    def list_ids_in_departments(self, departments: Iterable[str]) -> Sequence[int]:
        raise NotImplementedError
