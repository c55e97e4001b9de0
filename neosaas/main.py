import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import models, models_email  # noqa: F401 - register tables on Base.metadata
from .config import CORS_ORIGINS, ENVIRONMENT
from .database import Base, SessionLocal, engine
from .domain.billing.fallback_policy import BillingFallbackPolicy
from .domain.checkout.router import router as checkout_router
from .domain.email.encryption import get_encryption_secret
from .domain.email.router import router as email_admin_router
from .domain.email.router_service import EmailRouterService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Application starting up ({ENVIRONMENT})...")

    # Refuse to start without a usable credential vault secret
    get_encryption_secret()

    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    app.state.email_router = EmailRouterService(SessionLocal)
    app.state.billing_policy = BillingFallbackPolicy()

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="NeoSaaS Checkout API", version="1.0.0", lifespan=lifespan)

logger.info(f"CORS allowed origins: {CORS_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(checkout_router)
app.include_router(email_admin_router)


@app.get("/")
def root():
    return {"message": "NeoSaaS Checkout API is running"}


@app.get("/health")
def health():
    policy = getattr(app.state, "billing_policy", None)
    return {
        "status": "healthy",
        "billing": policy.status() if policy else None,
    }
