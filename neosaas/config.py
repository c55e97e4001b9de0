import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./neosaas.db")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))

# "development" forces the billing test-mode simulator
ENVIRONMENT = os.getenv("ENVIRONMENT", "production").strip().lower()

# Frontend base URL (CORS + links in emails)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", FRONTEND_URL).split(",") if o.strip()]

# Lago billing configuration (platform_config rows take precedence over these)
LAGO_API_KEY = os.getenv("LAGO_API_KEY")
LAGO_API_KEY_TEST = os.getenv("LAGO_API_KEY_TEST")
LAGO_API_URL = os.getenv("LAGO_API_URL", "https://api.getlago.com/api/v1")

# Billing circuit breaker: consecutive Lago failures before the backend is skipped
BILLING_BREAKER_FAIL_MAX = int(os.getenv("BILLING_BREAKER_FAIL_MAX", "5"))
BILLING_BREAKER_RESET_TIMEOUT = int(os.getenv("BILLING_BREAKER_RESET_TIMEOUT", "60"))

# Team notifications fallback recipient (used when no admin user exists)
NOTIFICATION_EMAIL = os.getenv("NOTIFICATION_EMAIL")

# Default sender for outgoing email
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "no-reply@neosaas.tech")
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "NeoSaaS Platform")

# Credential vault secret sources, checked in order.
# No default: the vault refuses to run without a secret of at least 32 characters.
CREDENTIALS_SECRET_ENV_VARS = ("CREDENTIALS_SECRET", "SECRET_KEY")
CREDENTIALS_SECRET_MIN_LENGTH = 32
