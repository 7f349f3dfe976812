from enum import Enum

from .errors import Unauthorized


class Role(str, Enum):
    OWNER = "OWNER"
    MINT_AND_BURN = "MINT_AND_BURN"


class AccessControl:
    """Explicit capability table: one owner plus any number of mint/burn grants."""

    def __init__(self, owner: str):
        self.owner = owner
        self.grants: dict[Role, set[str]] = {Role.OWNER: {owner}, Role.MINT_AND_BURN: set()}

    def has_role(self, identity: str, role: Role) -> bool:
        return identity in self.grants[role]

    def require(self, identity: str, role: Role) -> None:
        if not self.has_role(identity, role):
            raise Unauthorized(f"{identity} does not hold the {role.value} role")

    def grant(self, caller: str, identity: str, role: Role = Role.MINT_AND_BURN) -> bool:
        """Grant a role; returns False when the identity already held it."""
        self.require(caller, Role.OWNER)
        if role == Role.OWNER:
            raise Unauthorized("Ownership cannot be granted, only held")
        if identity in self.grants[role]:
            return False
        self.grants[role].add(identity)
        return True

    def members(self, role: Role) -> list[str]:
        return sorted(self.grants[role])
