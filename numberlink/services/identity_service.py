# numberlink/services/identity_service.py
"""
Registration, login, and the multi-company session model.

Two principal kinds log in here:
  - Individuals (drivers), one row per login.
  - Companies, where one CompanyAccount (phone + password) controls one or
    more Company profiles. Logging in as a company returns every profile of
    the account so the client can offer switching; switch_company re-checks
    the password before issuing a token scoped to another profile.

Credential failures always raise the same AuthenticationError message, whether
the identifier is unknown or the password is wrong.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from email_validator import validate_email, EmailNotValidError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from numberlink.errors import (AuthenticationError, AuthorizationError, ConflictError,
                               NotFoundError, NumberLinkError, ValidationError)
from numberlink.models.company import Company, CompanyAccount
from numberlink.models.individual import Individual
from numberlink.services.business_number_service import (BUSINESS_NUMBER_FORMAT_MESSAGE,
                                                         validate_business_number_format)
from numberlink.services.security import (Principal, PrincipalType, burn_password_check,
                                          create_access_token, hash_password,
                                          validate_password_policy, verify_password)
from numberlink.services.verification_cache import VerificationCache
from numberlink.utils.logger import get_logger
from numberlink.utils.phone import normalize_phone, same_phone

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid phone/email or password"


@dataclass
class AuthSession:
    """Outcome of a successful register/login/switch."""
    token: str
    user: Union[Individual, Company]
    user_type: PrincipalType
    companies: Optional[list] = field(default=None)


# ── Helpers ──────────────────────────────────────────────────────────────────

def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def normalize_email(email: str) -> str:
    """Validate syntax (no DNS lookup) and return the normalized address."""
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError:
        raise ValidationError("Invalid email address")


def _find_individual_by_phone(db: Session, phone: str) -> Optional[Individual]:
    return db.query(Individual).filter(Individual.phone_key == normalize_phone(phone)).first()


def _find_individual_by_email(db: Session, email: str) -> Optional[Individual]:
    return db.query(Individual).filter(func.lower(Individual.email) == email.strip().lower()).first()


def find_account_by_phone(db: Session, phone: str) -> Optional[CompanyAccount]:
    return db.query(CompanyAccount).filter(CompanyAccount.phone_key == normalize_phone(phone)).first()


def _session_for(user: Union[Individual, Company], user_type: PrincipalType,
                 companies: Optional[list] = None) -> AuthSession:
    token = create_access_token(Principal(id=user.id, type=user_type))
    return AuthSession(token=token, user=user, user_type=user_type, companies=companies)


def commit_or_conflict(db: Session, message: str):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(message)


# ── Registration ─────────────────────────────────────────────────────────────

def register_individual(db: Session, name: str, phone: str, email: str, password: str) -> AuthSession:
    name, phone, email = _clean(name), _clean(phone), _clean(email)
    if not name or not phone or not password or not password.strip():
        raise ValidationError("Name, phone and password are required")
    if not email:
        raise ValidationError("Email is required")
    email = normalize_email(email)

    if _find_individual_by_phone(db, phone):
        raise ConflictError("Phone number already registered")
    if _find_individual_by_email(db, email):
        raise ConflictError("Email already registered")
    validate_password_policy(password)

    now = datetime.utcnow()
    individual = Individual(
        name=name,
        phone=phone,
        phone_key=normalize_phone(phone),
        email=email,
        password=hash_password(password),
        verified=False,
        created_at=now,
    )
    db.add(individual)
    commit_or_conflict(db, "Phone number or email already registered")
    db.refresh(individual)
    logger.info(f"Individual registered: id={individual.id}")
    return _session_for(individual, PrincipalType.INDIVIDUAL)


def register_company(db: Session, cache: VerificationCache, business_number: str,
                     company_name: str, representative: str, phone: str, email: str,
                     password: str, contact_phone: Optional[str] = None) -> AuthSession:
    """
    Create a company profile. The business number must have passed
    verification within the cache TTL. If the phone already belongs to a
    company account, the new profile joins that account and the password must
    match the account's; otherwise a new account is opened with it.
    """
    business_number = _clean(business_number)
    company_name, representative = _clean(company_name), _clean(representative)
    phone, email = _clean(phone), _clean(email)
    if not all([business_number, company_name, representative, phone, email]) or not _clean(password):
        raise ValidationError("All fields are required")
    email = normalize_email(email)
    if not validate_business_number_format(business_number):
        raise ValidationError(BUSINESS_NUMBER_FORMAT_MESSAGE)

    if db.query(Company).filter(Company.business_number == business_number).first():
        raise ConflictError("Business number already registered")
    if not cache.is_verified(business_number):
        raise AuthorizationError("Business number verification required. Please verify it first.")
    validate_password_policy(password)

    now = datetime.utcnow()
    account = find_account_by_phone(db, phone)
    if account is None:
        account = CompanyAccount(
            phone=phone,
            phone_key=normalize_phone(phone),
            password=hash_password(password),
            created_at=now,
        )
        db.add(account)
        db.flush()
    elif not verify_password(password, account.password):
        # The account's password is the only password for every company under it
        raise AuthenticationError(INVALID_CREDENTIALS)

    company = Company(
        account_id=account.id,
        business_number=business_number,
        company_name=company_name,
        representative=representative,
        phone=account.phone,
        contact_phone=_clean(contact_phone) or None,
        email=email,
        verified=True,              # verification was proven before registration
        verified_at=now,
        created_at=now,
    )
    db.add(company)
    commit_or_conflict(db, "Business number already registered")
    db.refresh(company)
    logger.info(f"Company registered: id={company.id} bn={business_number} account={account.id}")
    return _session_for(company, PrincipalType.COMPANY, companies=list(account.companies))


def add_company(db: Session, cache: VerificationCache, principal: Principal, business_number: str,
                company_name: str, representative: str, email: str, password: str,
                contact_phone: Optional[str] = None) -> AuthSession:
    """Open another company profile under the caller's account."""
    current = _require_company(db, principal)
    return register_company(db, cache, business_number, company_name, representative,
                            current.account.phone, email, password, contact_phone)


# ── Login / switch ───────────────────────────────────────────────────────────

def login(db: Session, identifier: str, password: str, principal_type: PrincipalType,
          is_email: bool = False, default_company_id: Optional[int] = None) -> AuthSession:
    identifier = _clean(identifier)
    logger.info(f"Login attempt: type={principal_type.value} by={'email' if is_email else 'phone'}")
    if not identifier or not password:
        raise AuthenticationError(INVALID_CREDENTIALS)

    if principal_type is PrincipalType.INDIVIDUAL:
        return _login_individual(db, identifier, password, is_email)
    if principal_type is PrincipalType.COMPANY:
        return _login_company(db, identifier, password, is_email, default_company_id)
    raise ValidationError(f"Unknown principal type: {principal_type}")


def _login_individual(db: Session, identifier: str, password: str, is_email: bool) -> AuthSession:
    individual = (_find_individual_by_email(db, identifier) if is_email
                  else _find_individual_by_phone(db, identifier))
    if individual is None:
        burn_password_check()
        logger.warning("Individual login failed: unknown identifier")
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not verify_password(password, individual.password):
        logger.warning(f"Individual login failed: bad password id={individual.id}")
        raise AuthenticationError(INVALID_CREDENTIALS)

    individual.last_login = datetime.utcnow()
    db.commit()
    db.refresh(individual)
    return _session_for(individual, PrincipalType.INDIVIDUAL)


def _login_company(db: Session, identifier: str, password: str, is_email: bool,
                   default_company_id: Optional[int]) -> AuthSession:
    if is_email:
        matches = (db.query(Company)
                   .filter(func.lower(Company.email) == identifier.lower())
                   .order_by(Company.created_at, Company.id)
                   .all())
        account = matches[0].account if matches else None
        companies = [c for c in matches if account and c.account_id == account.id]
    else:
        account = find_account_by_phone(db, identifier)
        companies = list(account.companies) if account else []

    if account is None or not companies:
        burn_password_check()
        logger.warning("Company login failed: unknown identifier")
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not verify_password(password, account.password):
        logger.warning(f"Company login failed: bad password account={account.id}")
        raise AuthenticationError(INVALID_CREDENTIALS)

    active = companies[0]
    if default_company_id is not None:
        chosen = next((c for c in companies if c.id == default_company_id), None)
        if chosen:
            active = chosen
        else:
            logger.warning(f"Default company {default_company_id} not in account {account.id}, using first")

    logger.info(f"Company login: account={account.id} active={active.id} companies={len(companies)}")
    return _session_for(active, PrincipalType.COMPANY, companies=companies)


def switch_company(db: Session, principal: Principal, current_phone: str,
                   target_company_id: int, password: str) -> AuthSession:
    """
    Re-authenticate into a sibling company. The caller must hold a company
    session, the target must belong to the same account, the supplied phone
    must match the target's, and the password must verify against the target's
    account hash.
    """
    current = _require_company(db, principal)
    target = db.get(Company, target_company_id)
    if target is None:
        raise NotFoundError("Company not found")
    if target.account_id != current.account_id or not same_phone(current_phone or "", target.phone):
        logger.warning(f"Switch denied: company {current.id} → {target.id}")
        raise AuthorizationError("You do not have access to this company")
    if not verify_password(password, target.account.password):
        raise AuthenticationError("Incorrect password")

    logger.info(f"Company switch: {current.id} → {target.id}")
    return _session_for(target, PrincipalType.COMPANY, companies=list(target.account.companies))


# ── Current principal / profile ──────────────────────────────────────────────

def _require_company(db: Session, principal: Principal) -> Company:
    if not principal.is_company:
        raise AuthorizationError("Only companies can perform this action")
    company = db.get(Company, principal.id)
    if company is None:
        raise NotFoundError("Company not found")
    return company


def get_current_principal(db: Session, principal: Principal) -> AuthSession:
    """Profile of the authenticated principal; companies also get their siblings. No new token."""
    if principal.is_individual:
        individual = db.get(Individual, principal.id)
        if individual is None:
            raise NotFoundError("User not found")
        return AuthSession(token="", user=individual, user_type=PrincipalType.INDIVIDUAL)
    company = _require_company(db, principal)
    return AuthSession(token="", user=company, user_type=PrincipalType.COMPANY,
                       companies=list(company.account.companies))


def _apply_password_change(current_hash: str, current_password: Optional[str],
                           new_password: Optional[str]) -> Optional[str]:
    if not _clean(new_password):
        return None
    if not _clean(current_password):
        raise ValidationError("Current password is required")
    if not verify_password(current_password, current_hash):
        raise AuthenticationError("Current password is incorrect")
    validate_password_policy(new_password)
    return hash_password(new_password)


def update_individual_profile(db: Session, individual_id: int, name: Optional[str] = None,
                              phone: Optional[str] = None, email: Optional[str] = None,
                              current_password: Optional[str] = None,
                              new_password: Optional[str] = None) -> Individual:
    individual = db.get(Individual, individual_id)
    if individual is None:
        raise NotFoundError("User not found")

    if _clean(name):
        individual.name = name.strip()

    if _clean(phone) and normalize_phone(phone) != individual.phone_key:
        other = _find_individual_by_phone(db, phone)
        if other and other.id != individual.id:
            raise ConflictError("Phone number already registered")
        individual.phone = phone.strip()
        individual.phone_key = normalize_phone(phone)

    if _clean(email):
        normalized = normalize_email(email)
        other = _find_individual_by_email(db, normalized)
        if other and other.id != individual.id:
            raise ConflictError("Email already registered")
        individual.email = normalized

    new_hash = _apply_password_change(individual.password, current_password, new_password)
    if new_hash:
        individual.password = new_hash

    individual.updated_at = datetime.utcnow()
    commit_or_conflict(db, "Phone number or email already registered")
    db.refresh(individual)
    return individual


def apply_account_changes(db: Session, company: Company, phone: Optional[str] = None,
                          current_password: Optional[str] = None,
                          new_password: Optional[str] = None) -> None:
    """Stage phone/password changes on the company's account. The caller commits."""
    account = company.account
    now = datetime.utcnow()

    if _clean(phone) and normalize_phone(phone) != account.phone_key:
        other = find_account_by_phone(db, phone)
        if other and other.id != account.id:
            raise ConflictError("Phone number already registered")
        account.phone = phone.strip()
        account.phone_key = normalize_phone(phone)
        for sibling in account.companies:
            sibling.phone = account.phone
            sibling.updated_at = now

    new_hash = _apply_password_change(account.password, current_password, new_password)
    if new_hash:
        account.password = new_hash

    account.updated_at = now


def update_company_account(db: Session, company_id: int, phone: Optional[str] = None,
                           current_password: Optional[str] = None,
                           new_password: Optional[str] = None) -> Company:
    """
    Change the login phone and/or password of the account behind a company.
    Both are shared, so every sibling company sees the change.
    """
    company = db.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    try:
        apply_account_changes(db, company, phone=phone, current_password=current_password,
                              new_password=new_password)
    except NumberLinkError:
        db.rollback()
        raise
    commit_or_conflict(db, "Phone number already registered")
    db.refresh(company)
    return company
