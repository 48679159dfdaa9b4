# numberlink/services/security.py
"""
Password hashing, password policy, and session tokens.

Tokens are JWTs carrying the principal id (sub) and its type. A Principal is
the tagged value every guarded route receives: (id, individual|company).
"""

import enum
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from numberlink.config import settings
from numberlink.errors import AuthenticationError, ValidationError

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

PASSWORD_POLICY = re.compile(r"^(?=.*[A-Za-z])(?=.*\d).{8,}$")
PASSWORD_POLICY_MESSAGE = "Password must be at least 8 characters and contain letters and digits"


class PrincipalType(str, enum.Enum):
    INDIVIDUAL = "individual"
    COMPANY = "company"


@dataclass(frozen=True)
class Principal:
    id: int
    type: PrincipalType

    @property
    def is_individual(self) -> bool:
        return self.type is PrincipalType.INDIVIDUAL

    @property
    def is_company(self) -> bool:
        return self.type is PrincipalType.COMPANY


# ── Passwords ────────────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def burn_password_check() -> None:
    """Spend the same time as a real verify when there is no hash to check against."""
    pwd_context.dummy_verify()


def validate_password_policy(password: Optional[str]) -> None:
    if not password or not PASSWORD_POLICY.match(password):
        raise ValidationError(PASSWORD_POLICY_MESSAGE)


# ── Tokens ───────────────────────────────────────────────────────────────────

def create_access_token(principal: Principal, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(days=settings.JWT_EXPIRES_DAYS))
    payload = {"sub": str(principal.id), "type": principal.type.value, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Principal:
    """Fails with AuthenticationError on expiry, tampering, or a malformed payload."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return Principal(id=int(payload["sub"]), type=PrincipalType(payload["type"]))
    except (JWTError, KeyError, ValueError, TypeError):
        raise AuthenticationError("Invalid or expired token")
