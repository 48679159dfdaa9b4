# numberlink/services/oauth_service.py
"""
Social login for individuals (Kakao, Google).

Flow: the frontend is sent to provider.authorize_url(); the provider redirects
back with ?code=...; oauth_login() exchanges the code for an access token,
fetches the profile, and handle_oauth_login() finds the Individual by email or
creates one. Created accounts get a placeholder phone "<provider>_<id>", an
unusable random password, and are marked verified.
"""

import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from numberlink.config import settings
from numberlink.errors import ExternalServiceError, NotFoundError, ValidationError
from numberlink.models.individual import Individual
from numberlink.services.identity_service import AuthSession
from numberlink.services.security import Principal, PrincipalType, create_access_token, hash_password
from numberlink.utils.logger import get_logger
from numberlink.utils.phone import normalize_phone

logger = get_logger(__name__)


@dataclass
class OAuthProfile:
    provider: str
    external_id: str
    email: str
    name: str


class OAuthProvider(ABC):
    name = ""
    authorize_endpoint = ""
    token_endpoint = ""
    profile_endpoint = ""
    scope: Optional[str] = None

    def __init__(self, client_id: Optional[str], client_secret: Optional[str],
                 redirect_uri: Optional[str], timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.redirect_uri)

    def authorize_url(self, state: Optional[str] = None) -> str:
        if not self.configured:
            raise ExternalServiceError(f"{self.name} login is not configured",
                                       kind="unavailable", service=self.name)
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
        }
        if self.scope:
            params["scope"] = self.scope
        if state:
            params["state"] = state
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException:
            raise ExternalServiceError(f"{self.name} login timed out", kind="timeout", service=self.name)
        except httpx.HTTPStatusError as e:
            logger.warning(f"{self.name} returned HTTP {e.response.status_code} for {url}")
            kind = "rejected" if e.response.status_code < 500 else "unavailable"
            raise ExternalServiceError(f"{self.name} login failed", kind=kind, service=self.name)
        except httpx.TransportError as e:
            logger.error(f"{self.name} unreachable: {e}")
            raise ExternalServiceError(f"Could not reach {self.name}", kind="unreachable", service=self.name)
        except ValueError:
            raise ExternalServiceError(f"{self.name} returned an invalid response",
                                       kind="unavailable", service=self.name)

    async def exchange_code(self, code: str) -> str:
        data = {
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "code": code,
        }
        if self.client_secret:
            data["client_secret"] = self.client_secret
        payload = await self._request("POST", self.token_endpoint, data=data)
        token = payload.get("access_token")
        if not token:
            raise ExternalServiceError(f"{self.name} did not return an access token",
                                       kind="rejected", service=self.name)
        return token

    async def fetch_profile(self, access_token: str) -> OAuthProfile:
        payload = await self._request("GET", self.profile_endpoint,
                                      headers={"Authorization": f"Bearer {access_token}"})
        return self.parse_profile(payload)

    @abstractmethod
    def parse_profile(self, payload: dict) -> OAuthProfile:
        """Map the provider profile payload. Missing required keys raise ExternalServiceError."""

    def _external_id(self, payload: dict) -> str:
        external_id = payload.get("id") if isinstance(payload, dict) else None
        if external_id is None or external_id == "":
            raise ExternalServiceError(f"{self.name} profile has no user id",
                                       kind="rejected", service=self.name)
        return str(external_id)


class KakaoOAuthProvider(OAuthProvider):
    name = "kakao"
    authorize_endpoint = "https://kauth.kakao.com/oauth/authorize"
    token_endpoint = "https://kauth.kakao.com/oauth/token"
    profile_endpoint = "https://kapi.kakao.com/v2/user/me"

    def parse_profile(self, payload: dict) -> OAuthProfile:
        external_id = self._external_id(payload)
        account = payload.get("kakao_account") or {}
        profile = account.get("profile") or {}
        return OAuthProfile(
            provider=self.name,
            external_id=external_id,
            email=account.get("email") or f"{external_id}@kakao.com",
            name=profile.get("nickname") or f"kakao_user_{external_id}",
        )


class GoogleOAuthProvider(OAuthProvider):
    name = "google"
    authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    profile_endpoint = "https://www.googleapis.com/oauth2/v2/userinfo"
    scope = "openid email profile"

    def parse_profile(self, payload: dict) -> OAuthProfile:
        external_id = self._external_id(payload)
        email = payload.get("email")
        if not email:
            raise ExternalServiceError("Google account has no email", kind="rejected", service=self.name)
        return OAuthProfile(
            provider=self.name,
            external_id=external_id,
            email=email,
            name=payload.get("name") or email.split("@")[0],
        )


def get_provider(name: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> OAuthProvider:
    if name == "kakao":
        return KakaoOAuthProvider(settings.KAKAO_CLIENT_ID, settings.KAKAO_CLIENT_SECRET,
                                  settings.KAKAO_REDIRECT_URI, settings.OAUTH_TIMEOUT_SECONDS, transport)
    if name == "google":
        return GoogleOAuthProvider(settings.GOOGLE_CLIENT_ID, settings.GOOGLE_CLIENT_SECRET,
                                   settings.GOOGLE_REDIRECT_URI, settings.OAUTH_TIMEOUT_SECONDS, transport)
    raise NotFoundError(f"Unknown OAuth provider: {name}")


def handle_oauth_login(db: Session, profile: OAuthProfile) -> AuthSession:
    """Find-or-create by email. The same email through either provider is one account."""
    if not profile.email:
        raise ValidationError("OAuth profile has no email")
    logger.info(f"OAuth login: provider={profile.provider} external_id={profile.external_id}")

    individual = (db.query(Individual)
                  .filter(func.lower(Individual.email) == profile.email.lower())
                  .first())
    if individual is None:
        phone = f"{profile.provider}_{profile.external_id}"
        now = datetime.utcnow()
        individual = Individual(
            name=profile.name,
            phone=phone,
            phone_key=normalize_phone(phone),
            email=profile.email,
            password=hash_password(secrets.token_urlsafe(32)),
            verified=True,
            verified_at=now,
            created_at=now,
        )
        db.add(individual)
        try:
            db.commit()
        except IntegrityError:
            # Placeholder phone already taken: an earlier login created the row
            db.rollback()
            individual = (db.query(Individual)
                          .filter(func.lower(Individual.email) == profile.email.lower())
                          .first())
            if individual is None:
                raise ValidationError("Could not create account: phone number already in use")
        else:
            logger.info(f"OAuth individual created: id={individual.id} provider={profile.provider}")

    individual.last_login = datetime.utcnow()
    db.commit()
    db.refresh(individual)
    token = create_access_token(Principal(id=individual.id, type=PrincipalType.INDIVIDUAL))
    return AuthSession(token=token, user=individual, user_type=PrincipalType.INDIVIDUAL)


async def fetch_oauth_profile(provider: OAuthProvider, code: str) -> OAuthProfile:
    if not code:
        raise ValidationError("Authorization code is required")
    access_token = await provider.exchange_code(code)
    return await provider.fetch_profile(access_token)


def success_redirect_url(token: str) -> str:
    return f"{settings.FRONTEND_URL}/oauth/callback?{urlencode({'token': token})}"


def failure_redirect_url(message: str) -> str:
    return f"{settings.FRONTEND_URL}/login?{urlencode({'error': message})}"
