class TrusteePortalException(Exception):
    """Base exception for the trustee portal.

    Every subclass carries a stable machine-readable ``code`` that the
    transport layer maps onto a status code.
    """

    code = "ERROR"
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class UnauthorizedException(TrusteePortalException):
    """Raised when no verified identity accompanies the request"""

    code = "UNAUTHENTICATED"
    default_message = "Authentication required"


class NoMembershipException(TrusteePortalException):
    """Raised when an authenticated principal is not a member of the tenant"""

    code = "NO_MEMBERSHIP"
    default_message = "Not a member of this organization"


class ForbiddenException(TrusteePortalException):
    """Raised when a membership lacks the permission or rank for an action"""

    code = "FORBIDDEN"
    default_message = "Insufficient permissions"


class NotFoundException(TrusteePortalException):
    """Raised when resource not found"""

    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictException(TrusteePortalException):
    """Raised when an action collides with existing state"""

    code = "CONFLICT"
    default_message = "Conflicting state"


class AlreadyMemberException(ConflictException):
    code = "ALREADY_MEMBER"
    default_message = "This user is already a member of the organization"


class InvitationPendingException(ConflictException):
    code = "INVITATION_PENDING"
    default_message = "An invitation is already pending for this email"


class AlreadyAcceptedException(ConflictException):
    code = "ALREADY_ACCEPTED"
    default_message = "Invitation has already been accepted"


class ConcurrentUpdateException(ConflictException):
    """Raised when an optimistic lock detects a concurrent write"""

    code = "CONCURRENT_UPDATE"
    default_message = "The record was modified by another request; reload and retry"


class SlugTakenException(ConflictException):
    code = "SLUG_TAKEN"
    default_message = "Organization slug is already taken"


class InvalidInvitationException(TrusteePortalException):
    """Raised for unknown, expired, or closed invitation tokens.

    The three cases share one message so callers cannot probe which applied.
    """

    code = "INVALID_INVITATION"
    default_message = "Invalid or expired invitation"


class ValidationException(TrusteePortalException):
    """Raised for business logic validation errors"""

    code = "VALIDATION_ERROR"
    default_message = "Invalid request"
