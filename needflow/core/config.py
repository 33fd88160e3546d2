import os
from decimal import Decimal

# Database (SQLite by default; point DATABASE_URL at PostgreSQL in production)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./needflow.db")

# JWT
SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_THIS_TO_A_SECURE_SECRET_KEY_IN_PRODUCTION")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

# Amount thresholds (strictly greater than)
DG_VALIDATION_THRESHOLD = Decimal(os.getenv("DG_VALIDATION_THRESHOLD", "1000000"))
DCF_VALIDATION_THRESHOLD = Decimal(os.getenv("DCF_VALIDATION_THRESHOLD", "500000"))

# Reminders
REMINDER_STALE_HOURS = float(os.getenv("REMINDER_STALE_HOURS", "24"))
REMINDER_SWEEP_INTERVAL_SECONDS = float(os.getenv("REMINDER_SWEEP_INTERVAL_SECONDS", "3600"))

# Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Fallback department key for approval chain rules
DEFAULT_CHAIN_DEPARTMENT = "*"
