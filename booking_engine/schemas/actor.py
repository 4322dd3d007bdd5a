"""Identity of the caller, as supplied by the external auth layer."""

from pydantic import Field

from ..core.enums import RoleName
from ._strict_base import StrictRequestModel


class Actor(StrictRequestModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    role: RoleName

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN

    @property
    def is_system(self) -> bool:
        return self.role == RoleName.SYSTEM


SYSTEM_ACTOR = Actor(user_id="system", role=RoleName.SYSTEM)
