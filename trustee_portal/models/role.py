"""Role and permission enums for role-based access control."""

from enum import Enum as PyEnum


class Role(str, PyEnum):
    """
    Organization roles for charity governance.

    Role Hierarchy (highest to lowest):
    1. OWNER - Full control, can delete the organization
    2. ADMIN - Manage users, documents, and most settings
    3. CHAIR, VICE_CHAIR, TREASURER, SECRETARY - board officers
    4. MLRO, COMPLIANCE_OFFICER, HEALTH_OFFICER - compliance officers
    5. TRUSTEE - Board member with standard access
    6. VOLUNTEER - Limited access
    7. VIEWER - Read-only access

    SUPER_ADMIN is a platform-wide role outside of any organization and is
    never stored on a membership.
    """

    SUPER_ADMIN = "super_admin"
    OWNER = "owner"
    ADMIN = "admin"
    CHAIR = "chair"
    VICE_CHAIR = "vice_chair"
    TREASURER = "treasurer"
    SECRETARY = "secretary"
    MLRO = "mlro"
    COMPLIANCE_OFFICER = "compliance_officer"
    HEALTH_OFFICER = "health_officer"
    TRUSTEE = "trustee"
    VOLUNTEER = "volunteer"
    VIEWER = "viewer"


class Permission(str, PyEnum):
    """Atomic capabilities, grouped by resource family."""

    # Organization
    ORG_MANAGE = "org:manage"
    ORG_VIEW = "org:view"
    ORG_DELETE = "org:delete"

    # Users / members
    USER_CREATE = "user:create"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"
    USER_VIEW = "user:view"
    USER_INVITE = "user:invite"

    # Roles
    ROLE_ASSIGN = "role:assign"
    ROLE_MANAGE = "role:manage"

    # Documents
    DOC_CREATE = "doc:create"
    DOC_UPDATE = "doc:update"
    DOC_DELETE = "doc:delete"
    DOC_VIEW = "doc:view"
    DOC_APPROVE = "doc:approve"

    # Tasks
    TASK_CREATE = "task:create"
    TASK_UPDATE = "task:update"
    TASK_DELETE = "task:delete"
    TASK_VIEW = "task:view"
    TASK_ASSIGN = "task:assign"

    # Meetings
    MEETING_CREATE = "meeting:create"
    MEETING_UPDATE = "meeting:update"
    MEETING_DELETE = "meeting:delete"
    MEETING_VIEW = "meeting:view"
    MEETING_SCHEDULE = "meeting:schedule"

    # Committees
    COMMITTEE_CREATE = "committee:create"
    COMMITTEE_UPDATE = "committee:update"
    COMMITTEE_DELETE = "committee:delete"
    COMMITTEE_VIEW = "committee:view"

    # Compliance
    COMPLIANCE_VIEW = "compliance:view"
    COMPLIANCE_MANAGE = "compliance:manage"
    AUDIT_VIEW = "audit:view"

    # Billing
    BILLING_VIEW = "billing:view"
    BILLING_MANAGE = "billing:manage"

    @property
    def family(self) -> str:
        return self.value.split(":", 1)[0]
