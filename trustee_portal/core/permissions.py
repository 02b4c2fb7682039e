"""
Role/permission table.

Holds the ordered role hierarchy and the role -> permission-set mapping.
Both are built once at import time into a read-only ``PermissionMatrix``
and never mutated afterwards, so concurrent readers need no locking.

SUPER_ADMIN is deliberately absent from the table; the authorization
engine treats it as an unconditional bypass.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from trustee_portal.models.role import Permission, Role

P = Permission

# Highest first. Position determines rank; every role has its own rank.
ROLE_HIERARCHY: tuple[Role, ...] = (
    Role.OWNER,
    Role.ADMIN,
    Role.CHAIR,
    Role.VICE_CHAIR,
    Role.TREASURER,
    Role.SECRETARY,
    Role.MLRO,
    Role.COMPLIANCE_OFFICER,
    Role.HEALTH_OFFICER,
    Role.TRUSTEE,
    Role.VOLUNTEER,
    Role.VIEWER,
)

ROLE_GRANTS: Mapping[Role, Iterable[Permission]] = {
    Role.OWNER: (
        P.ORG_MANAGE, P.ORG_VIEW, P.ORG_DELETE,
        P.USER_CREATE, P.USER_UPDATE, P.USER_DELETE, P.USER_VIEW, P.USER_INVITE,
        P.ROLE_ASSIGN, P.ROLE_MANAGE,
        P.DOC_CREATE, P.DOC_UPDATE, P.DOC_DELETE, P.DOC_VIEW, P.DOC_APPROVE,
        P.TASK_CREATE, P.TASK_UPDATE, P.TASK_DELETE, P.TASK_VIEW, P.TASK_ASSIGN,
        P.MEETING_CREATE, P.MEETING_UPDATE, P.MEETING_DELETE, P.MEETING_VIEW, P.MEETING_SCHEDULE,
        P.COMMITTEE_CREATE, P.COMMITTEE_UPDATE, P.COMMITTEE_DELETE, P.COMMITTEE_VIEW,
        P.COMPLIANCE_VIEW, P.COMPLIANCE_MANAGE, P.AUDIT_VIEW,
        P.BILLING_VIEW, P.BILLING_MANAGE,
    ),
    # No org delete, no billing management
    Role.ADMIN: (
        P.ORG_VIEW,
        P.USER_CREATE, P.USER_UPDATE, P.USER_DELETE, P.USER_VIEW, P.USER_INVITE,
        P.ROLE_ASSIGN,
        P.DOC_CREATE, P.DOC_UPDATE, P.DOC_VIEW, P.DOC_APPROVE,
        P.TASK_CREATE, P.TASK_UPDATE, P.TASK_VIEW, P.TASK_ASSIGN,
        P.MEETING_CREATE, P.MEETING_UPDATE, P.MEETING_VIEW, P.MEETING_SCHEDULE,
        P.COMMITTEE_CREATE, P.COMMITTEE_UPDATE, P.COMMITTEE_VIEW,
        P.COMPLIANCE_VIEW, P.COMPLIANCE_MANAGE, P.AUDIT_VIEW,
        P.BILLING_VIEW,
    ),
    Role.CHAIR: (
        P.ORG_VIEW,
        P.USER_VIEW, P.USER_INVITE,
        P.DOC_CREATE, P.DOC_UPDATE, P.DOC_VIEW, P.DOC_APPROVE,
        P.TASK_CREATE, P.TASK_UPDATE, P.TASK_VIEW, P.TASK_ASSIGN,
        P.MEETING_CREATE, P.MEETING_UPDATE, P.MEETING_DELETE, P.MEETING_VIEW, P.MEETING_SCHEDULE,
        P.COMMITTEE_CREATE, P.COMMITTEE_UPDATE, P.COMMITTEE_DELETE, P.COMMITTEE_VIEW,
        P.COMPLIANCE_VIEW, P.AUDIT_VIEW,
    ),
    Role.VICE_CHAIR: (
        P.ORG_VIEW,
        P.USER_VIEW,
        P.DOC_CREATE, P.DOC_UPDATE, P.DOC_VIEW,
        P.TASK_CREATE, P.TASK_UPDATE, P.TASK_VIEW, P.TASK_ASSIGN,
        P.MEETING_CREATE, P.MEETING_UPDATE, P.MEETING_VIEW, P.MEETING_SCHEDULE,
        P.COMMITTEE_VIEW,
        P.COMPLIANCE_VIEW,
    ),
    # Financial approval and billing
    Role.TREASURER: (
        P.ORG_VIEW,
        P.USER_VIEW,
        P.DOC_VIEW, P.DOC_APPROVE,
        P.TASK_VIEW,
        P.MEETING_VIEW,
        P.COMMITTEE_VIEW,
        P.COMPLIANCE_VIEW,
        P.BILLING_VIEW, P.BILLING_MANAGE,
    ),
    # Minutes and records
    Role.SECRETARY: (
        P.ORG_VIEW,
        P.USER_VIEW, P.USER_INVITE,
        P.DOC_CREATE, P.DOC_UPDATE, P.DOC_VIEW,
        P.TASK_CREATE, P.TASK_UPDATE, P.TASK_VIEW, P.TASK_ASSIGN,
        P.MEETING_CREATE, P.MEETING_UPDATE, P.MEETING_VIEW, P.MEETING_SCHEDULE,
        P.COMMITTEE_VIEW,
        P.COMPLIANCE_VIEW,
    ),
    # Money Laundering Reporting Officer
    Role.MLRO: (
        P.ORG_VIEW,
        P.USER_VIEW,
        P.DOC_VIEW,
        P.COMPLIANCE_VIEW, P.COMPLIANCE_MANAGE,
        P.AUDIT_VIEW,
    ),
    Role.COMPLIANCE_OFFICER: (
        P.ORG_VIEW,
        P.USER_VIEW,
        P.DOC_VIEW,
        P.COMPLIANCE_VIEW, P.COMPLIANCE_MANAGE,
        P.AUDIT_VIEW,
    ),
    Role.HEALTH_OFFICER: (
        P.ORG_VIEW,
        P.USER_VIEW,
        P.DOC_VIEW,
        P.COMPLIANCE_VIEW,
    ),
    Role.TRUSTEE: (
        P.ORG_VIEW,
        P.USER_VIEW,
        P.DOC_VIEW,
        P.TASK_VIEW,
        P.MEETING_VIEW,
        P.COMMITTEE_VIEW,
        P.COMPLIANCE_VIEW,
    ),
    Role.VOLUNTEER: (
        P.ORG_VIEW,
        P.DOC_VIEW,
        P.TASK_VIEW,
        P.MEETING_VIEW,
    ),
    Role.VIEWER: (
        P.ORG_VIEW,
        P.DOC_VIEW,
        P.MEETING_VIEW,
    ),
}

ROLE_DISPLAY_NAMES: Mapping[Role, str] = MappingProxyType(
    {
        Role.SUPER_ADMIN: "Super Administrator",
        Role.OWNER: "Organization Owner",
        Role.ADMIN: "Administrator",
        Role.CHAIR: "Chair",
        Role.VICE_CHAIR: "Vice Chair",
        Role.TREASURER: "Treasurer",
        Role.SECRETARY: "Secretary",
        Role.MLRO: "MLRO",
        Role.COMPLIANCE_OFFICER: "Compliance Officer",
        Role.HEALTH_OFFICER: "Health Officer",
        Role.TRUSTEE: "Trustee",
        Role.VOLUNTEER: "Volunteer",
        Role.VIEWER: "Viewer",
    }
)


@dataclass(frozen=True)
class PermissionMatrix:
    """
    Immutable role table.

    Attributes:
        ranks: Read-only mapping of tenant role -> rank (higher outranks lower)
        grants: Read-only mapping of tenant role -> frozenset of permissions
    """

    ranks: Mapping[Role, int]
    grants: Mapping[Role, frozenset[Permission]]

    @property
    def roles(self) -> tuple[Role, ...]:
        """Tenant roles, highest rank first."""
        return tuple(sorted(self.ranks, key=self.ranks.__getitem__, reverse=True))

    @property
    def top_rank(self) -> int:
        return max(self.ranks.values(), default=0)


def build_permission_matrix(
    hierarchy: Iterable[Role] = ROLE_HIERARCHY,
    grants: Mapping[Role, Iterable[Permission]] = ROLE_GRANTS,
) -> PermissionMatrix:
    """
    Build the read-only permission matrix.

    Args:
        hierarchy: Tenant roles ordered from highest to lowest rank
        grants: Role -> permissions held; roles missing here get an empty set

    Returns:
        PermissionMatrix covering every role in the hierarchy

    Raises:
        ValueError: If SUPER_ADMIN appears, a role repeats, or grants name a
            role outside the hierarchy
    """
    ordered = list(hierarchy)
    if Role.SUPER_ADMIN in ordered or Role.SUPER_ADMIN in grants:
        raise ValueError("SUPER_ADMIN is a bypass, not a matrix entry")
    if len(set(ordered)) != len(ordered):
        raise ValueError("Role hierarchy must not repeat a role")
    unknown = set(grants) - set(ordered)
    if unknown:
        raise ValueError(f"Grants reference roles outside the hierarchy: {sorted(r.value for r in unknown)}")

    ranks = {role: len(ordered) - index for index, role in enumerate(ordered)}
    frozen_grants = {role: frozenset(grants.get(role, ())) for role in ordered}
    return PermissionMatrix(
        ranks=MappingProxyType(ranks),
        grants=MappingProxyType(frozen_grants),
    )


# Computed once at process start
DEFAULT_PERMISSION_MATRIX = build_permission_matrix()
