# numberlink/routers/auth.py
"""
Registration, login, company switching, profile, password reset and social login.

Handlers that hash or verify passwords are plain `def` so FastAPI runs them in
its threadpool and bcrypt never blocks the event loop.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from numberlink.config import settings
from numberlink.database import get_db
from numberlink.dependencies import (get_business_verifier, get_current_principal,
                                     get_mail_transport, get_verification_cache, limiter,
                                     require_company)
from numberlink.errors import NumberLinkError
from numberlink.schemas.auth import (AddCompanyRequest, AuthResponse, CompanyOut, IndividualOut,
                                     LoginRequest, MessageResponse, OAuthUrlResponse,
                                     PasswordResetConfirm, PasswordResetRequest,
                                     PasswordResetResponse, ProfileUpdateRequest,
                                     RegisterCompanyRequest, RegisterIndividualRequest,
                                     SwitchCompanyRequest, VerifyBusinessRequest,
                                     VerifyBusinessResponse)
from numberlink.services import identity_service, oauth_service, password_reset_service
from numberlink.services.business_number_service import BusinessNumberVerifier, verify_business_number
from numberlink.services.email_service import MailTransport
from numberlink.services.identity_service import AuthSession
from numberlink.services.security import Principal, PrincipalType
from numberlink.services.verification_cache import VerificationCache
from numberlink.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def to_auth_response(session: AuthSession) -> AuthResponse:
    if session.user_type is PrincipalType.COMPANY:
        user = CompanyOut.model_validate(session.user)
    else:
        user = IndividualOut.model_validate(session.user)
    companies = None
    if session.companies is not None:
        companies = [CompanyOut.model_validate(c) for c in session.companies]
    return AuthResponse(token=session.token or None, user=user,
                        user_type=session.user_type, companies=companies)


# ── Registration ─────────────────────────────────────────────────────────────

@router.post("/auth/register/user", response_model=AuthResponse, status_code=201,
             summary="Register an individual (driver)")
@limiter.limit(settings.AUTH_RATE_LIMIT)
def register_user(request: Request, body: RegisterIndividualRequest, db: Session = Depends(get_db)):
    session = identity_service.register_individual(db, body.name, body.phone, body.email, body.password)
    return to_auth_response(session)


@router.post("/auth/verify-business", response_model=VerifyBusinessResponse,
             summary="Verify a business number with the registry")
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def verify_business(
    request: Request,
    body: VerifyBusinessRequest,
    db: Session = Depends(get_db),
    verifier: BusinessNumberVerifier = Depends(get_business_verifier),
    cache: VerificationCache = Depends(get_verification_cache),
):
    """A successful check opens a 24h window for registering that number."""
    return await verify_business_number(db, body.business_number, verifier, cache)


@router.post("/auth/register/company", response_model=AuthResponse, status_code=201,
             summary="Register a company (business number must be verified first)")
@limiter.limit(settings.AUTH_RATE_LIMIT)
def register_company(
    request: Request,
    body: RegisterCompanyRequest,
    db: Session = Depends(get_db),
    cache: VerificationCache = Depends(get_verification_cache),
):
    session = identity_service.register_company(
        db, cache, body.business_number, body.company_name, body.representative,
        body.phone, body.email, body.password, body.contact_phone)
    return to_auth_response(session)


# ── Login / session ──────────────────────────────────────────────────────────

@router.post("/auth/login", response_model=AuthResponse, summary="Log in by phone or email")
@limiter.limit(settings.AUTH_RATE_LIMIT)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    """Company logins return every company of the account in `companies`."""
    is_email = bool(body.email and body.email.strip())
    identifier = body.email if is_email else body.phone
    session = identity_service.login(db, identifier or "", body.password, body.user_type,
                                     is_email=is_email, default_company_id=body.default_company_id)
    return to_auth_response(session)


@router.post("/auth/switch-company", response_model=AuthResponse,
             summary="Re-authenticate into another company of the same account")
@limiter.limit(settings.AUTH_RATE_LIMIT)
def switch_company(
    request: Request,
    body: SwitchCompanyRequest,
    principal: Principal = Depends(require_company),
    db: Session = Depends(get_db),
):
    session = identity_service.switch_company(db, principal, body.phone, body.company_id, body.password)
    return to_auth_response(session)


@router.get("/auth/me", response_model=AuthResponse, summary="Current principal profile")
def me(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return to_auth_response(identity_service.get_current_principal(db, principal))


@router.put("/auth/profile", response_model=AuthResponse, summary="Update own profile")
def update_profile(
    body: ProfileUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Individuals: name/phone/email/password. Companies: account phone/password."""
    if principal.is_individual:
        identity_service.update_individual_profile(
            db, principal.id, name=body.name, phone=body.phone, email=body.email,
            current_password=body.current_password, new_password=body.new_password)
    else:
        identity_service.update_company_account(
            db, principal.id, phone=body.phone,
            current_password=body.current_password, new_password=body.new_password)
    return to_auth_response(identity_service.get_current_principal(db, principal))


@router.post("/auth/companies", response_model=AuthResponse, status_code=201,
             summary="Add another company under the current account")
def add_company(
    body: AddCompanyRequest,
    principal: Principal = Depends(require_company),
    db: Session = Depends(get_db),
    cache: VerificationCache = Depends(get_verification_cache),
):
    session = identity_service.add_company(
        db, cache, principal, body.business_number, body.company_name, body.representative,
        body.email, body.password, body.contact_phone)
    return to_auth_response(session)


# ── Password reset ───────────────────────────────────────────────────────────

@router.post("/auth/password/reset-request", response_model=PasswordResetResponse,
             summary="Request a password reset link")
@limiter.limit(settings.AUTH_RATE_LIMIT)
def request_password_reset(
    request: Request,
    body: PasswordResetRequest,
    db: Session = Depends(get_db),
    mailer: MailTransport = Depends(get_mail_transport),
):
    return password_reset_service.request_password_reset(db, mailer, email=body.email, phone=body.phone)


@router.post("/auth/password/reset", response_model=MessageResponse,
             summary="Set a new password with a reset token")
@limiter.limit(settings.AUTH_RATE_LIMIT)
def reset_password(request: Request, body: PasswordResetConfirm, db: Session = Depends(get_db)):
    return password_reset_service.reset_password(db, body.token, body.new_password)


# ── Social login ─────────────────────────────────────────────────────────────

@router.get("/auth/oauth/{provider}/url", response_model=OAuthUrlResponse,
            summary="Provider authorize URL")
def oauth_url(provider: str, state: Optional[str] = None):
    return {"url": oauth_service.get_provider(provider).authorize_url(state)}


@router.get("/auth/oauth/{provider}/callback", summary="Provider redirect target")
async def oauth_callback(provider: str, code: Optional[str] = None, error: Optional[str] = None,
                         db: Session = Depends(get_db)):
    """Always answers with a redirect to the frontend, carrying a token or an error."""
    if error or not code:
        logger.warning(f"OAuth {provider} callback without code: {error}")
        return RedirectResponse(oauth_service.failure_redirect_url(error or "missing_code"))
    try:
        profile = await oauth_service.fetch_oauth_profile(oauth_service.get_provider(provider), code)
        session = await run_in_threadpool(oauth_service.handle_oauth_login, db, profile)
    except NumberLinkError as e:
        logger.warning(f"OAuth {provider} login failed: {e.message}")
        return RedirectResponse(oauth_service.failure_redirect_url(e.message))
    return RedirectResponse(oauth_service.success_redirect_url(session.token))
