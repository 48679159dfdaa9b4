# numberlink/services/business_number_service.py
"""
Business registration number (사업자등록번호) verification.

verify_business_number() checks the DDD-DD-DDDDD format, asks a registry
verifier whether the number is a live business, and on success records it in
the verification cache and flips any existing company with that number to
verified. The verifier is pluggable:

  SimulatedBusinessNumberVerifier   — offline, rejects a fixed list of numbers
  PublicDataBusinessNumberVerifier  — data.go.kr NTS business status API

Registry failures surface as ExternalServiceError with a kind the client can
act on: timeout / unreachable / unavailable are retryable, rejected is not.
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

import httpx
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from numberlink.config import settings
from numberlink.errors import ExternalServiceError, ValidationError
from numberlink.models.company import Company
from numberlink.services.verification_cache import VerificationCache
from numberlink.utils.logger import get_logger

logger = get_logger(__name__)

BUSINESS_NUMBER_PATTERN = re.compile(r"^\d{3}-\d{2}-\d{5}$")
BUSINESS_NUMBER_FORMAT_MESSAGE = "Invalid business number format (e.g. 123-45-67890)"


def validate_business_number_format(business_number: Optional[str]) -> bool:
    return bool(business_number and BUSINESS_NUMBER_PATTERN.match(business_number))


class BusinessNumberVerifier(ABC):
    @abstractmethod
    async def verify(self, business_number: str) -> bool:
        """True when the registry reports the number as an active business."""


class SimulatedBusinessNumberVerifier(BusinessNumberVerifier):
    INVALID_NUMBERS = {"000-00-00000", "111-11-11111", "999-99-99999"}

    async def verify(self, business_number: str) -> bool:
        return business_number not in self.INVALID_NUMBERS


class PublicDataBusinessNumberVerifier(BusinessNumberVerifier):
    """
    POST {api_url}?serviceKey=... with {"b_no": ["1234567890"]}.
    data[0].b_stt_cd == "01" means an operating business.
    """

    def __init__(self, api_url: str, api_key: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def verify(self, business_number: str) -> bool:
        digits = business_number.replace("-", "")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    params={"serviceKey": self.api_key},
                    json={"b_no": [digits]},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException:
            logger.warning(f"Registry timeout for {business_number}")
            raise ExternalServiceError(
                "Business number verification timed out. Please try again shortly.",
                kind="timeout", service="business_registry")
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            logger.error(f"Registry returned HTTP {code} for {business_number}")
            if code == 400:
                raise ValidationError("Business number was rejected by the registry. Please check it.")
            if code in (401, 403):
                raise ExternalServiceError(
                    "Business number verification is misconfigured. Please contact support.",
                    kind="rejected", service="business_registry")
            raise ExternalServiceError(
                "Business number verification service is temporarily unavailable.",
                kind="unavailable", service="business_registry")
        except httpx.TransportError as e:
            logger.error(f"Registry unreachable for {business_number}: {e}")
            raise ExternalServiceError(
                "Could not reach the business number verification service.",
                kind="unreachable", service="business_registry")
        except ValueError:
            raise ExternalServiceError(
                "Business number verification service returned an invalid response.",
                kind="unavailable", service="business_registry")

        items = data.get("data") or [{}]
        item = items[0] or {}
        valid = item.get("valid") is True or item.get("valid_yn") == "Y" or item.get("b_stt_cd") == "01"
        logger.info(f"Registry result for {business_number}: {'valid' if valid else 'invalid'}")
        return valid


def build_verifier() -> BusinessNumberVerifier:
    """Pick the verifier from settings. public_data without credentials is a config error."""
    if settings.BUSINESS_VERIFIER == "public_data":
        if not settings.PUBLIC_DATA_API_URL or not settings.PUBLIC_DATA_API_KEY:
            raise RuntimeError("BUSINESS_VERIFIER=public_data requires PUBLIC_DATA_API_URL and PUBLIC_DATA_API_KEY")
        return PublicDataBusinessNumberVerifier(
            settings.PUBLIC_DATA_API_URL,
            settings.PUBLIC_DATA_API_KEY,
            timeout=settings.BUSINESS_VERIFY_TIMEOUT_SECONDS,
        )
    return SimulatedBusinessNumberVerifier()


def mark_company_verified(db: Session, business_number: str) -> None:
    """Flip an already registered company with this number to verified."""
    company = db.query(Company).filter(Company.business_number == business_number).first()
    if company and not company.verified:
        company.verified = True
        company.verified_at = datetime.utcnow()
        db.commit()
        logger.info(f"Company {company.id} marked verified via {business_number}")


async def verify_business_number(db: Session, business_number: str,
                                 verifier: BusinessNumberVerifier,
                                 cache: VerificationCache) -> dict:
    business_number = (business_number or "").strip()
    if not validate_business_number_format(business_number):
        raise ValidationError(BUSINESS_NUMBER_FORMAT_MESSAGE)

    logger.info(f"Verifying business number {business_number}")
    valid = await verifier.verify(business_number)
    if not valid:
        return {"valid": False, "message": "Business number is not valid"}

    cache.mark_verified(business_number)
    await run_in_threadpool(mark_company_verified, db, business_number)

    return {"valid": True, "message": "Business number verified"}
