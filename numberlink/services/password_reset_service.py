# numberlink/services/password_reset_service.py
"""
Password reset for individuals.

request_password_reset() issues a single-use token (24h by default) and mails
a reset link; any earlier unused tokens of that individual are dropped. The
response is the same whether or not the identifier matched, so the endpoint
cannot be used to probe for accounts.

reset_password() consumes a token. The "mark used" is a conditional UPDATE
(used = false → true) committed together with the new hash, so two
concurrent submissions of the same token cannot both succeed.
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from numberlink.config import settings
from numberlink.errors import ExternalServiceError, ValidationError
from numberlink.models.individual import Individual
from numberlink.models.password_reset import PasswordReset
from numberlink.services.email_service import MailTransport, render_password_reset_email
from numberlink.services.security import hash_password, validate_password_policy
from numberlink.utils.logger import get_logger
from numberlink.utils.phone import normalize_phone

logger = get_logger(__name__)

RESET_REQUESTED_MESSAGE = "If the account exists, a password reset link has been sent to its email"
INVALID_TOKEN_MESSAGE = "Invalid or expired reset link"


def _find_individual(db: Session, email: Optional[str], phone: Optional[str]) -> Optional[Individual]:
    if email and email.strip():
        return (db.query(Individual)
                .filter(func.lower(Individual.email) == email.strip().lower())
                .first())
    if phone and phone.strip():
        return db.query(Individual).filter(Individual.phone_key == normalize_phone(phone)).first()
    raise ValidationError("Email or phone number is required")


def build_reset_url(token: str) -> str:
    return f"{settings.FRONTEND_URL}/reset-password?token={token}"


def request_password_reset(db: Session, mailer: MailTransport, email: Optional[str] = None,
                           phone: Optional[str] = None) -> dict:
    """
    Returns {"message"} always; outside production also {"token", "reset_url"}
    when a token was issued, so the flow can be exercised without SMTP.
    """
    individual = _find_individual(db, email, phone)
    result = {"message": RESET_REQUESTED_MESSAGE}
    if individual is None or not individual.email:
        logger.info("Password reset requested for unknown identifier or account without email")
        return result

    now = datetime.utcnow()
    (db.query(PasswordReset)
     .filter(PasswordReset.individual_id == individual.id, PasswordReset.used.is_(False))
     .delete(synchronize_session=False))

    token = secrets.token_hex(32)
    db.add(PasswordReset(
        individual_id=individual.id,
        token=token,
        expires_at=now + timedelta(hours=settings.PASSWORD_RESET_TTL_HOURS),
        used=False,
        created_at=now,
    ))
    db.commit()
    logger.info(f"Password reset token issued for individual {individual.id}")

    reset_url = build_reset_url(token)
    try:
        mailer.send(individual.email, f"[{settings.APP_NAME}] Password reset",
                    render_password_reset_email(individual.name, reset_url))
    except ExternalServiceError as e:
        # Token issuance stands even when delivery fails
        logger.warning(f"Password reset mail not delivered ({e.kind}): {e.message}")

    if not settings.IS_PRODUCTION:
        result["token"] = token
        result["reset_url"] = reset_url
    return result


def reset_password(db: Session, token: str, new_password: str) -> dict:
    if not token or not new_password:
        raise ValidationError("Token and new password are required")

    reset = db.query(PasswordReset).filter(PasswordReset.token == token).first()
    if reset is None or reset.used or reset.expires_at <= datetime.utcnow():
        raise ValidationError(INVALID_TOKEN_MESSAGE)
    validate_password_policy(new_password)

    claimed = (db.query(PasswordReset)
               .filter(PasswordReset.id == reset.id, PasswordReset.used.is_(False))
               .update({PasswordReset.used: True}, synchronize_session=False))
    if claimed != 1:
        db.rollback()
        raise ValidationError(INVALID_TOKEN_MESSAGE)

    individual = db.get(Individual, reset.individual_id)
    individual.password = hash_password(new_password)
    individual.updated_at = datetime.utcnow()
    db.commit()
    logger.info(f"Password reset completed for individual {individual.id}")
    return {"message": "Password has been reset"}
