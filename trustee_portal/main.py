import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from trustee_portal.config import settings
from trustee_portal.core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidInvitationException,
    NoMembershipException,
    NotFoundException,
    TrusteePortalException,
    UnauthorizedException,
    ValidationException,
)
from trustee_portal.core.logging import configure_logging
from trustee_portal.routes import audit_routes, invitation_routes, tenant_routes

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,  # Disable in production
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS middleware
cors_origins = settings.cors_origins_list
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _error_body(exc: TrusteePortalException) -> dict:
    return {"detail": str(exc), "code": exc.code}


# Exception handlers
@app.exception_handler(UnauthorizedException)
async def unauthorized_exception_handler(request: Request, exc: UnauthorizedException):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=_error_body(exc),
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(NoMembershipException)
async def no_membership_exception_handler(request: Request, exc: NoMembershipException):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=_error_body(exc))


@app.exception_handler(ForbiddenException)
async def forbidden_exception_handler(request: Request, exc: ForbiddenException):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=_error_body(exc))


@app.exception_handler(NotFoundException)
async def not_found_exception_handler(request: Request, exc: NotFoundException):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_error_body(exc))


# Covers ALREADY_MEMBER, INVITATION_PENDING, ALREADY_ACCEPTED, CONCURRENT_UPDATE, SLUG_TAKEN
@app.exception_handler(ConflictException)
async def conflict_exception_handler(request: Request, exc: ConflictException):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=_error_body(exc))


@app.exception_handler(InvalidInvitationException)
async def invalid_invitation_exception_handler(request: Request, exc: InvalidInvitationException):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body(exc))


@app.exception_handler(ValidationException)
async def validation_exception_handler(request: Request, exc: ValidationException):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body(exc))


@app.exception_handler(TrusteePortalException)
async def trustee_portal_exception_handler(request: Request, exc: TrusteePortalException):
    logger.error("Unmapped domain error %s: %s", exc.code, exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_body(exc))


# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


# Root endpoint
@app.get("/")
async def root():
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
    }


# Include routers
app.include_router(tenant_routes.router, prefix="/api/tenants", tags=["Tenants"])
app.include_router(invitation_routes.tenant_router, prefix="/api/tenants", tags=["Invitations"])
app.include_router(audit_routes.tenant_router, prefix="/api/tenants", tags=["Audit"])
app.include_router(invitation_routes.public_router, prefix="/api/invitations", tags=["Invitations"])
app.include_router(audit_routes.router, prefix="/api", tags=["Audit"])
