"""
FastAPI application wiring for the hospital management web app.

Sets up both credential sources (session cookie for the browser UI,
bearer tokens for the JSON API), the authorization redirect handler and
startup validation, and mounts the protected routes. The handlers here
only report who got through; the record handling behind them lives
elsewhere.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from starlette.middleware.sessions import SessionMiddleware

from hospital_authz.auth import (
    CURRENT_USER_ROLE,
    BearerTokenMiddleware,
    Principal,
    claims,
    install_authorization,
    session,
    validate_configuration,
)
from hospital_authz.config import Settings, get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate authorization configuration before serving anything."""
    settings = get_settings()

    if settings.sentry_dsn:
        from hospital_authz.integrations.sentry import init_sentry
        init_sentry()

    # Raises ConfigurationDefect and aborts startup on a bad matrix
    validate_configuration()

    logger.info("Hospital API starting in %s mode", settings.environment)

    yield

    logger.info("Hospital API shutting down")


# =============================================================================
# Response Models
# =============================================================================


class AccessResponse(BaseModel):
    user_id: str
    role: str

    @classmethod
    def of(cls, principal: Principal, **extra) -> AccessResponse:
        return cls(user_id=principal.user_id, role=principal.role, **extra)


class RecordAccessResponse(AccessResponse):
    record_id: str


class PageAccessResponse(AccessResponse):
    # Advisory, for tailoring the page
    current_user_role: str | None = None


class DestinationResponse(BaseModel):
    destination: str


# =============================================================================
# Public routes
# =============================================================================

public = APIRouter()


@public.get("/health")
async def health_check():
    return {"status": "healthy"}


@public.get("/Account/Login", response_model=DestinationResponse)
async def login_page():
    """Login destination for unauthenticated requests."""
    return DestinationResponse(destination="Account/Login")


@public.get("/Account/AccessDenied", response_model=DestinationResponse)
async def access_denied_page():
    """Destination for authenticated requests that fail a check."""
    return DestinationResponse(destination="Account/AccessDenied")


# =============================================================================
# Browser UI (session mode)
# =============================================================================

ui = APIRouter()


@ui.get("/Dashboard", response_model=AccessResponse)
async def dashboard(principal: Principal = Depends(session.authenticated)):
    return AccessResponse.of(principal)


@ui.get("/Dashboard/Admin", response_model=AccessResponse)
async def admin_dashboard(principal: Principal = Depends(session.admin_only)):
    return AccessResponse.of(principal)


@ui.get("/Patient", response_model=AccessResponse)
async def patient_list(principal: Principal = Depends(session.can_view_patients)):
    return AccessResponse.of(principal)


@ui.post("/Patient/Create", response_model=AccessResponse)
async def patient_create(principal: Principal = Depends(session.can_create_patients)):
    return AccessResponse.of(principal)


@ui.post("/Patient/Delete/{patient_id}", response_model=RecordAccessResponse)
async def patient_delete(
    patient_id: str,
    principal: Principal = Depends(session.can_delete_patients),
):
    return RecordAccessResponse.of(principal, record_id=patient_id)


@ui.get("/Prescription/Create", response_model=AccessResponse)
async def prescription_create(
    principal: Principal = Depends(session.can_create_prescriptions),
):
    return AccessResponse.of(principal)


@ui.get("/Treatment", response_model=AccessResponse)
async def treatment_list(principal: Principal = Depends(session.doctor_or_admin)):
    return AccessResponse.of(principal)


@ui.get("/NurseTask", response_model=AccessResponse)
async def nurse_tasks(principal: Principal = Depends(session.nurse_or_doctor_or_admin)):
    return AccessResponse.of(principal)


@ui.get("/Medication/Usage", response_model=AccessResponse)
async def medication_usage(
    principal: Principal = Depends(session.can_track_medication_usage),
):
    return AccessResponse.of(principal)


@ui.get("/User", response_model=AccessResponse)
async def user_list(principal: Principal = Depends(session.require_roles("Admin", "Staff"))):
    return AccessResponse.of(principal)


@ui.get("/User/Patients", response_model=PageAccessResponse)
async def user_patients(
    request: Request,
    principal: Principal = Depends(session.staff_only),
):
    return PageAccessResponse.of(
        principal,
        current_user_role=getattr(request.state, CURRENT_USER_ROLE, None),
    )


@ui.get("/Database", response_model=AccessResponse)
async def database_tools(principal: Principal = Depends(session.can_manage_system)):
    return AccessResponse.of(principal)


# =============================================================================
# JSON API (claims mode)
# =============================================================================

api = APIRouter(prefix="/api")


@api.get("/me", response_model=AccessResponse)
async def current_user(principal: Principal = Depends(claims.authenticated)):
    return AccessResponse.of(principal)


@api.get("/appointments", response_model=AccessResponse)
async def list_appointments(principal: Principal = Depends(claims.can_view_appointments)):
    return AccessResponse.of(principal)


@api.post("/appointments", response_model=AccessResponse)
async def create_appointment(
    principal: Principal = Depends(claims.can_create_appointments),
):
    return AccessResponse.of(principal)


@api.delete("/appointments/{appointment_id}", response_model=RecordAccessResponse)
async def delete_appointment(
    appointment_id: str,
    principal: Principal = Depends(claims.can_delete_appointments),
):
    return RecordAccessResponse.of(principal, record_id=appointment_id)


@api.get("/medicines", response_model=AccessResponse)
async def list_medicines(principal: Principal = Depends(claims.healthcare)):
    return AccessResponse.of(principal)


@api.get("/prescriptions/new", response_model=AccessResponse)
async def new_prescription(principal: Principal = Depends(claims.doctor_or_admin)):
    return AccessResponse.of(principal)


# =============================================================================
# App Setup
# =============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application with both credential sources installed."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Hospital Management API",
        description="Role and permission gated access to hospital records",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Innermost first: bearer identity, then session, then CORS
    app.add_middleware(BearerTokenMiddleware, settings=settings)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret_key,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age,
        same_site="lax",
        https_only=settings.is_production,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_authorization(app)

    app.include_router(public)
    app.include_router(ui)
    app.include_router(api)
    return app


app = create_app()
