"""Caller identity passed explicitly into every command.

Authentication happens upstream; the core only receives an opaque actor id
and a role, and decides whether that actor may touch a given record.
"""

from dataclasses import dataclass
from enum import Enum

from commerce.errors import Unauthorized


class Role(Enum):
    CUSTOMER = "Customer"
    VENDOR = "Vendor"
    ADMIN = "Admin"
    SYSTEM = "System"


@dataclass(frozen=True)
class Actor:
    actor_id: str
    role: str = Role.CUSTOMER.value

    @classmethod
    def from_command(cls, command) -> "Actor":
        return cls(actor_id=str(command.actor_id), role=command.actor_role or Role.CUSTOMER.value)

    @property
    def is_privileged(self) -> bool:
        return self.role in (Role.ADMIN.value, Role.SYSTEM.value)

    def require(self, allowed: bool, message: str) -> None:
        if not (allowed or self.is_privileged):
            raise Unauthorized(message)

    def require_privileged(self, message: str) -> None:
        self.require(False, message)


SYSTEM_ACTOR = Actor(actor_id="system", role=Role.SYSTEM.value)
