# numberlink/main.py
"""
FastAPI application entry point.
Includes CORS, rate limiting, domain and global error handlers, and all routers.
Collaborators (verification cache, registry verifier, payment gateway, mail
transport) live on app.state so tests can swap them.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from numberlink.routers import auth, companies, vehicles, payments, health
from numberlink.database import create_tables
from numberlink.config import settings
from numberlink.dependencies import limiter
from numberlink.errors import NumberLinkError, AuthenticationError
from numberlink.services.business_number_service import build_verifier
from numberlink.services.email_service import build_mail_transport
from numberlink.services.payment_service import SimulatedPaymentGateway
from numberlink.services.scheduler import build_scheduler
from numberlink.services.verification_cache import InMemoryVerificationCache
from numberlink.utils.logger import get_logger
import time

logger = get_logger(__name__)


# ── Startup / shutdown ───────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 {settings.APP_NAME} backend starting up ({settings.ENVIRONMENT})...")
    create_tables()
    logger.info("✅ Database tables ready")

    scheduler = build_scheduler(app.state.verification_cache)
    scheduler.start()
    logger.info(f"🧹 Verification cache sweep every {settings.VERIFICATION_SWEEP_MINUTES} min")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_HOST}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")
    try:
        yield
    finally:
        scheduler.shutdown(wait=False)
        logger.info(f"🛑 {settings.APP_NAME} backend shutting down...")


app = FastAPI(
    title="NumberLink API",
    description="Commercial vehicle-number leasing marketplace where companies list vehicles and drivers pay to reveal contacts.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.state.verification_cache = InMemoryVerificationCache()
app.state.business_verifier = build_verifier()
app.state.payment_gateway = SimulatedPaymentGateway()
app.state.mail_transport = build_mail_transport()

# ── Rate limiting ────────────────────────────────────────────────────────────
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ── CORS (frontend origins only) ─────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Payment-Webhook-Secret"],
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(NumberLinkError)
async def domain_exception_handler(request: Request, exc: NumberLinkError):
    if exc.status_code >= 500:
        logger.warning(f"{request.url.path} → {exc.status_code}: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    content = {"detail": "Internal server error"}
    if not settings.IS_PRODUCTION:
        content["error"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(auth.router,      prefix=settings.API_PREFIX, tags=["🔐 Auth"])
app.include_router(companies.router, prefix=settings.API_PREFIX, tags=["🏢 Companies"])
app.include_router(vehicles.router,  prefix=settings.API_PREFIX, tags=["🚚 Vehicles"])
app.include_router(payments.router,  prefix=settings.API_PREFIX, tags=["💳 Payments"])
app.include_router(health.router,    tags=["💚 Health"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("numberlink.main:app", host=settings.BACKEND_HOST, port=settings.BACKEND_PORT, reload=True)
