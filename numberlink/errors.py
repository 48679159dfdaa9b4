# numberlink/errors.py
"""
Domain error taxonomy.
Services raise these; main.py maps each one to an HTTP status and a
{"detail": message} body. Nothing here knows about FastAPI.
"""

from typing import Optional


class NumberLinkError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(NumberLinkError):
    """Malformed or missing input."""
    status_code = 400


class AuthenticationError(NumberLinkError):
    """Bad credentials or token. Message never says which factor was wrong."""
    status_code = 401


class AuthorizationError(NumberLinkError):
    """Authenticated but not entitled (payment required, unverified, wrong company)."""
    status_code = 403


class NotFoundError(NumberLinkError):
    status_code = 404


class ConflictError(NumberLinkError):
    """Uniqueness violation."""
    status_code = 409


class InvalidStateError(NumberLinkError):
    """Entity exists but the operation does not apply in its current state."""
    status_code = 400


class ExternalServiceError(NumberLinkError):
    """
    Failure of an outside collaborator (registry verifier, mail, OAuth provider).
    kind: timeout | unreachable | rejected | unavailable
    """
    STATUS_BY_KIND = {
        "timeout": 504,
        "unreachable": 503,
        "rejected": 502,
        "unavailable": 503,
    }

    def __init__(self, message: str, kind: str = "unavailable", service: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.service = service
        self.status_code = self.STATUS_BY_KIND.get(kind, 502)

    @property
    def retryable(self) -> bool:
        return self.kind in ("timeout", "unreachable", "unavailable")
