"""
Authorization engine.

Pure predicates over a ``PermissionMatrix``. Nothing here raises for a
negative decision: callers get ``False`` or a denied ``TransitionResult``
and decide how to surface it. SUPER_ADMIN is handled in exactly one place
(``_is_super``) so the bypass cannot drift between call sites.

Unknown role values (e.g. a stale string read from the database) fail
closed: no permissions, lowest rank, cannot manage or be managed.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from trustee_portal.core.permissions import DEFAULT_PERMISSION_MATRIX, PermissionMatrix
from trustee_portal.models.role import Permission, Role

RoleLike = Role | str | None

UNKNOWN_RANK = 0


def parse_role(value: RoleLike) -> Role | None:
    """Coerce a role value to ``Role``; None for anything unrecognised."""
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        try:
            return Role(value.strip().lower())
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a role transition check; ``reason`` is set on denial."""

    allowed: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> "TransitionResult":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "TransitionResult":
        return cls(allowed=False, reason=reason)


class AuthorizationEngine:
    """Permission checks, hierarchy comparison and role-transition rules."""

    def __init__(self, matrix: PermissionMatrix = DEFAULT_PERMISSION_MATRIX):
        self._matrix = matrix

    @property
    def matrix(self) -> PermissionMatrix:
        return self._matrix

    @staticmethod
    def _is_super(role: Role | None) -> bool:
        return role is Role.SUPER_ADMIN

    def rank_of(self, role: RoleLike) -> int:
        """
        Relative rank of a role.

        SUPER_ADMIN ranks above every tenant role; unknown roles rank below all.
        """
        parsed = parse_role(role)
        if parsed is None:
            return UNKNOWN_RANK
        if self._is_super(parsed):
            return self._matrix.top_rank + 1
        return self._matrix.ranks.get(parsed, UNKNOWN_RANK)

    def permissions_for(self, role: RoleLike) -> frozenset[Permission]:
        parsed = parse_role(role)
        if self._is_super(parsed):
            return frozenset(Permission)
        if parsed is None:
            return frozenset()
        return self._matrix.grants.get(parsed, frozenset())

    def has_permission(self, role: RoleLike, permission: Permission) -> bool:
        parsed = parse_role(role)
        if self._is_super(parsed):
            return True
        if parsed is None:
            return False
        return permission in self._matrix.grants.get(parsed, frozenset())

    def has_all_permissions(self, role: RoleLike, permissions: Iterable[Permission]) -> bool:
        return all(self.has_permission(role, p) for p in permissions)

    def has_any_permission(self, role: RoleLike, permissions: Iterable[Permission]) -> bool:
        return any(self.has_permission(role, p) for p in permissions)

    def has_minimum_role(self, role: RoleLike, threshold: RoleLike) -> bool:
        if parse_role(role) is None or parse_role(threshold) is None:
            return False
        return self.rank_of(role) >= self.rank_of(threshold)

    def can_manage_role(self, manager_role: RoleLike, target_role: RoleLike) -> bool:
        """
        True if ``manager_role`` strictly outranks ``target_role``.

        Peers of identical rank cannot manage each other, and nobody
        manages SUPER_ADMIN.
        """
        manager = parse_role(manager_role)
        target = parse_role(target_role)
        if manager is None or target is None:
            return False
        if self._is_super(target):
            return False
        return self.has_minimum_role(manager, target) and manager is not target

    def invitable_roles(self, inviter_role: RoleLike) -> frozenset[Role]:
        """Tenant roles at or below the inviter's rank."""
        if parse_role(inviter_role) is None:
            return frozenset()
        ceiling = self.rank_of(inviter_role)
        return frozenset(role for role in self._matrix.ranks if self.rank_of(role) <= ceiling)

    def can_transition_role(
        self,
        current_role: RoleLike,
        proposed_role: RoleLike,
        changer_role: RoleLike,
        *,
        is_self: bool = False,
    ) -> TransitionResult:
        """
        Validate moving a membership from ``current_role`` to ``proposed_role``.

        Args:
            current_role: Role the target membership holds now
            proposed_role: Role being assigned
            changer_role: Role of the principal making the change
            is_self: True when the changer holds the target membership

        Returns:
            TransitionResult; denied results carry a reason for audit and
            user-facing messages
        """
        current = parse_role(current_role)
        proposed = parse_role(proposed_role)
        changer = parse_role(changer_role)
        if current is None or proposed is None or changer is None:
            return TransitionResult.deny("Unknown role")
        if is_self:
            return TransitionResult.deny("Cannot change your own role; transfer ownership instead")
        if current is proposed:
            return TransitionResult.deny("New role must be different from current role")
        if self._is_super(current) or self._is_super(proposed):
            return TransitionResult.deny("Super administrator role cannot be assigned or modified")
        if not self.can_manage_role(changer, proposed):
            return TransitionResult.deny("Insufficient permissions to assign this role")
        if not self.can_manage_role(changer, current):
            return TransitionResult.deny("Insufficient permissions to modify this role")
        return TransitionResult.allow()


# Shared engine over the process-wide matrix
authorization_engine = AuthorizationEngine()
