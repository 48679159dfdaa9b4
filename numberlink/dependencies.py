# numberlink/dependencies.py
"""
Request dependencies shared by the routers: the authenticated Principal,
principal-type guards, and the collaborators kept on app.state
(verification cache, registry verifier, payment gateway, mail transport).
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from slowapi import Limiter
from slowapi.util import get_remote_address

from numberlink.config import settings
from numberlink.errors import AuthenticationError, AuthorizationError
from numberlink.services.business_number_service import BusinessNumberVerifier
from numberlink.services.email_service import MailTransport
from numberlink.services.payment_service import PaymentGateway
from numberlink.services.security import Principal, decode_access_token
from numberlink.services.verification_cache import VerificationCache

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/login", auto_error=False)

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


def get_optional_principal(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[Principal]:
    """Principal when a valid bearer token is sent, else None. A bad token is still an error."""
    if not token:
        return None
    return decode_access_token(token)


def get_current_principal(principal: Optional[Principal] = Depends(get_optional_principal)) -> Principal:
    if principal is None:
        raise AuthenticationError("Authentication required")
    return principal


def require_individual(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_individual:
        raise AuthorizationError("Only individual users can perform this action")
    return principal


def require_company(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_company:
        raise AuthorizationError("Only companies can perform this action")
    return principal


def get_verification_cache(request: Request) -> VerificationCache:
    return request.app.state.verification_cache


def get_business_verifier(request: Request) -> BusinessNumberVerifier:
    return request.app.state.business_verifier


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_mail_transport(request: Request) -> MailTransport:
    return request.app.state.mail_transport
