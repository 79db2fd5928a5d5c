"""Browser-facing routes: landing page, auth forms and the admin dashboard."""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict
from starlette.middleware.sessions import SessionMiddleware

from .backend import DataService
from .dashboard import DashboardAggregator, can_toggle_user, complaint_actions
from .database import Database, resolve_database_path
from .errors import AuthError, UpdateError
from .identity import IdentityProvider, validate_signup
from .models import ComplaintStatus, Role
from .notifications import SUCCESS, SessionNotifier, consume_flash
from .sessions import SessionContext, SessionManager

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
STATIC_DIR = Path(__file__).resolve().parent / "static"

SESSION_COOKIE_NAME = "rentify_session"
SESSION_TOKEN_KEY = "session_token"

DASHBOARD_TABS = ("overview", "users", "apartments", "complaints")

ROLE_CHOICES = (
    (Role.TENANT.value, "Tenant (Looking for apartment)"),
    (Role.LANDLORD.value, "Landlord (Have apartments to rent)"),
    (Role.ADMIN.value, "Admin (System administrator)"),
)

logger = logging.getLogger("rentify.web")


class _View(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PartyView(_View):
    full_name: str
    email: str


class StatsView(_View):
    total_users: int
    total_landlords: int
    total_tenants: int
    total_apartments: int
    total_applications: int
    total_complaints: int


class UserView(_View):
    id: str
    full_name: str
    email: str
    role: Role
    is_active: bool
    created_at: Optional[datetime] = None


class ApartmentView(_View):
    id: str
    title: str
    address: str
    city: str
    monthly_rent: float
    type: str
    is_published: bool
    landlord: Optional[PartyView] = None
    created_at: Optional[datetime] = None


class ComplaintView(_View):
    id: str
    subject: str
    description: str
    status: ComplaintStatus
    complainant: Optional[PartyView] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SnapshotResponse(_View):
    stats: StatsView
    users: List[UserView]
    apartments: List[ApartmentView]
    complaints: List[ComplaintView]
    loaded_at: Optional[datetime] = None


def _parse_flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _format_rent(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def create_app(
    *,
    backend: Optional[DataService] = None,
    session_secret: Optional[str] = None,
    secure_cookies: Optional[bool] = None,
    session_manager: Optional[SessionManager] = None,
) -> FastAPI:
    """Create the Rentify web application."""

    if backend is None:
        database = Database(resolve_database_path(os.getenv("RENTIFY_DB_PATH")))
        database.initialize()
        backend = database

    if session_secret is None:
        session_secret = os.getenv("RENTIFY_SESSION_SECRET")
    if not session_secret:
        raise RuntimeError("RENTIFY_SESSION_SECRET must be configured to serve the web interface")

    if secure_cookies is None:
        secure_cookies = _parse_flag(os.getenv("RENTIFY_SESSION_SECURE", ""))

    sessions = session_manager if session_manager is not None else SessionManager()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await backend.close()

    app = FastAPI(
        title="Rentify",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.backend = backend
    app.state.sessions = sessions

    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        session_cookie=SESSION_COOKIE_NAME,
        https_only=secure_cookies,
        same_site="lax",
        max_age=int(sessions.ttl.total_seconds()),
    )

    if STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
    templates.env.globals["now"] = datetime.now
    templates.env.filters["rent"] = _format_rent

    def _flash(request: Request, message: str, *, category: str = "info") -> None:
        SessionNotifier(request.session).notify(message, category=category)

    async def _get_context(request: Request) -> Optional[SessionContext]:
        token = request.session.get(SESSION_TOKEN_KEY)
        if not token:
            return None
        context = sessions.resolve(str(token))
        if context is None or not context.is_authenticated:
            request.session.pop(SESSION_TOKEN_KEY, None)
            return None

        identity = await IdentityProvider(backend, context).refresh()
        if identity is None:
            logger.info("Dropping web session whose backend session is no longer valid")
            sessions.destroy(str(token))
            request.session.pop(SESSION_TOKEN_KEY, None)
            _flash(request, "Session expired. Please sign in again.", category="error")
            return None
        return context

    def _start_session(request: Request, context: SessionContext) -> None:
        existing = request.session.get(SESSION_TOKEN_KEY)
        if existing:
            sessions.destroy(str(existing))
        request.session[SESSION_TOKEN_KEY] = sessions.create(context)

    def _redirect(request: Request, name: str, **query: str) -> RedirectResponse:
        url = request.url_for(name)
        if query:
            url = url.include_query_params(**query)
        return RedirectResponse(str(url), status_code=status.HTTP_303_SEE_OTHER)

    def _home_for(request: Request, context: SessionContext) -> RedirectResponse:
        if context.role is Role.ADMIN:
            return _redirect(request, "admin_dashboard")
        return _redirect(request, "landing")

    def _render(
        request: Request,
        template: str,
        context: Optional[SessionContext],
        *,
        status_code: int = status.HTTP_200_OK,
        **extra: Any,
    ) -> HTMLResponse:
        values: Dict[str, Any] = {
            "identity": context.identity if context else None,
            "messages": consume_flash(request.session),
        }
        values.update(extra)
        return templates.TemplateResponse(request, template, values, status_code=status_code)

    async def _require_admin(request: Request) -> SessionContext | RedirectResponse:
        context = await _get_context(request)
        if context is None:
            return _redirect(request, "show_login")
        if context.role is not Role.ADMIN:
            _flash(request, "Access denied. Admin only.", category="error")
            return _redirect(request, "landing")
        return context

    @app.get("/", response_class=HTMLResponse, name="landing")
    async def landing(request: Request):
        return _render(request, "landing.html", await _get_context(request))

    @app.get("/login", response_class=HTMLResponse, name="show_login")
    async def login_form(request: Request):
        context = await _get_context(request)
        if context is not None:
            return _home_for(request, context)
        return _render(request, "login.html", None, email="", error=None)

    @app.post("/login", name="process_login")
    async def process_login(request: Request, email: str = Form(""), password: str = Form("")):
        context = SessionContext()
        provider = IdentityProvider(backend, context)
        try:
            await provider.sign_in(email, password)
        except AuthError as exc:
            return _render(
                request,
                "login.html",
                None,
                status_code=status.HTTP_400_BAD_REQUEST,
                email=email,
                error=exc.message,
            )

        _start_session(request, context)
        _flash(request, "Login successful!", category=SUCCESS)
        return _home_for(request, context)

    @app.get("/signup", response_class=HTMLResponse, name="show_signup")
    async def signup_form(request: Request):
        context = await _get_context(request)
        if context is not None:
            return _home_for(request, context)
        return _render(
            request,
            "signup.html",
            None,
            form={"full_name": "", "email": "", "role": Role.TENANT.value},
            roles=ROLE_CHOICES,
            error=None,
        )

    @app.post("/signup", name="process_signup")
    async def process_signup(
        request: Request,
        full_name: str = Form(""),
        email: str = Form(""),
        password: str = Form(""),
        confirm_password: str = Form(""),
        role: str = Form(Role.TENANT.value),
    ):
        context = SessionContext()
        provider = IdentityProvider(backend, context)
        try:
            if not confirm_password:
                raise AuthError("Please fill in all fields")
            validate_signup(email, password, full_name, role)
            if password != confirm_password:
                raise AuthError("Passwords do not match")
            await provider.sign_up(email, password, full_name, role)
        except AuthError as exc:
            return _render(
                request,
                "signup.html",
                None,
                status_code=status.HTTP_400_BAD_REQUEST,
                form={"full_name": full_name, "email": email, "role": role},
                roles=ROLE_CHOICES,
                error=exc.message,
            )

        _start_session(request, context)
        _flash(request, "Account created successfully!", category=SUCCESS)
        return _home_for(request, context)

    @app.get("/logout", name="logout")
    async def logout(request: Request):
        token = request.session.pop(SESSION_TOKEN_KEY, None)
        context = sessions.destroy(str(token)) if token else None
        if context is not None:
            await IdentityProvider(backend, context).sign_out()
            _flash(request, "Signed out successfully", category=SUCCESS)
        return _redirect(request, "landing")

    @app.get("/admin/dashboard", response_class=HTMLResponse, name="admin_dashboard")
    async def admin_dashboard(request: Request, tab: str = "overview"):
        context = await _require_admin(request)
        if isinstance(context, RedirectResponse):
            return context

        active_tab = tab if tab in DASHBOARD_TABS else "overview"
        aggregator = DashboardAggregator(backend, context, SessionNotifier(request.session))
        snapshot = await aggregator.load_snapshot()
        return _render(
            request,
            "dashboard.html",
            context,
            snapshot=snapshot,
            tab=active_tab,
            tabs=DASHBOARD_TABS,
            complaint_actions=complaint_actions,
            can_toggle_user=can_toggle_user,
        )

    @app.get("/admin/dashboard/snapshot", name="admin_snapshot")
    async def admin_snapshot(request: Request):
        context = await _get_context(request)
        if context is None:
            return JSONResponse({"detail": "Not authenticated"}, status_code=status.HTTP_401_UNAUTHORIZED)
        if context.role is not Role.ADMIN:
            return JSONResponse({"detail": "Access denied. Admin only."}, status_code=status.HTTP_403_FORBIDDEN)

        aggregator = DashboardAggregator(backend, context, SessionNotifier(request.session))
        snapshot = await aggregator.load_snapshot()
        payload = SnapshotResponse.model_validate(snapshot)
        return JSONResponse(payload.model_dump(mode="json"))

    @app.post("/admin/users/{user_id}/active", name="toggle_user_active")
    async def toggle_user_active(request: Request, user_id: str, active: str = Form(...)):
        context = await _require_admin(request)
        if isinstance(context, RedirectResponse):
            return context

        aggregator = DashboardAggregator(backend, context, SessionNotifier(request.session))
        try:
            await aggregator.set_user_active(user_id, _parse_flag(active), reload=False)
        except UpdateError:
            logger.warning("User status change for %s was rejected", user_id)
        return _redirect(request, "admin_dashboard", tab="users")

    @app.post("/admin/complaints/{complaint_id}/status", name="update_complaint_status")
    async def update_complaint_status(request: Request, complaint_id: str, status_value: str = Form(..., alias="status")):
        context = await _require_admin(request)
        if isinstance(context, RedirectResponse):
            return context

        aggregator = DashboardAggregator(backend, context, SessionNotifier(request.session))
        try:
            await aggregator.set_complaint_status(complaint_id, status_value, reload=False)
        except UpdateError:
            logger.warning("Complaint %s status change to %s was rejected", complaint_id, status_value)
        return _redirect(request, "admin_dashboard", tab="complaints")

    return app


__all__ = ["SnapshotResponse", "create_app"]
