# numberlink/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + the verification cache size.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from numberlink.database import get_db
from numberlink.dependencies import get_verification_cache
from numberlink.services.verification_cache import VerificationCache
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db),
                 cache: VerificationCache = Depends(get_verification_cache)):
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "verification_cache": len(cache) if hasattr(cache, "__len__") else None,
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    return result
