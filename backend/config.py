import os
import secrets
import logging
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from supabase import create_client, Client

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logger = logging.getLogger(__name__)


def load_jwt_secret(name: str) -> str:
    """Read a signing secret; only a dev process may run without one"""
    secret = os.getenv(name)
    if secret:
        return secret
    if ENVIRONMENT != "dev":
        raise ValueError(f"{name} must be set in environment variables")
    logger.warning(f"{name} is not set, signing tokens with a throwaway secret for this process")
    return secrets.token_urlsafe(32)


JWT_SECRET_KEY = load_jwt_secret("JWT_SECRET_KEY")
JWT_REFRESH_SECRET_KEY = load_jwt_secret("JWT_REFRESH_SECRET_KEY")
JWT_ALGORITHM = "HS256"
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", 60))
JWT_REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("JWT_REFRESH_TOKEN_EXPIRE_DAYS", 7))

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
SUPABASE_STORAGE_BUCKET = os.getenv("SUPABASE_STORAGE_BUCKET", "farming-products")

# --- Payment gateway ---
PAYMENT_PROVIDER = os.getenv("PAYMENT_PROVIDER", "adwa")
ADWA_MERCHANT_KEY = os.getenv("ADWA_MERCHANT_KEY")
ADWA_APPLICATION_KEY = os.getenv("ADWA_APPLICATION_KEY")
ADWA_SUBSCRIPTION_KEY = os.getenv("ADWA_SUBSCRIPTION_KEY")
ADWA_BASE_URL = os.getenv("ADWA_BASE_URL")
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
EXTERNAL_PAYMENT_SECRET = os.getenv("EXTERNAL_PAYMENT_SECRET")

# Mobile-money confirmation polling, in seconds
PAYMENT_POLL_INITIAL_DELAY = float(os.getenv("PAYMENT_POLL_INITIAL_DELAY", 10))
PAYMENT_POLL_MAX_DELAY = float(os.getenv("PAYMENT_POLL_MAX_DELAY", 30))
PAYMENT_POLL_BACKOFF = float(os.getenv("PAYMENT_POLL_BACKOFF", 2.0))
PAYMENT_POLL_TIMEOUT = float(os.getenv("PAYMENT_POLL_TIMEOUT", 100))
# Off where no process outlives the request (Lambda); the provider webhook confirms instead
PAYMENT_BACKGROUND_POLLING = os.getenv("PAYMENT_BACKGROUND_POLLING", "true").lower() == "true"

# --- Push notifications ---
EXPO_PUSH_URL = os.getenv("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")


_supabase_admin_client = None

def get_supabase_admin_client() -> Client:
    global _supabase_admin_client
    if _supabase_admin_client is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in environment variables")

        _supabase_admin_client = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _supabase_admin_client

if DATABASE_URL:
    sync_engine = create_engine(DATABASE_URL.replace("postgresql+asyncpg://", "postgresql://"))

    asyncpg_url = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

    if "?" in asyncpg_url:
        base_url = asyncpg_url.split("?")[0]
    else:
        base_url = asyncpg_url

    asyncpg_url = f"{base_url}?prepared_statement_cache_size=0"

    async_engine = create_async_engine(
        asyncpg_url,
        echo=False,
        pool_pre_ping=False,
        pool_size=5,
        max_overflow=0
    )

    AsyncSessionLocal = sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
else:
    sync_engine = None
    async_engine = None
    AsyncSessionLocal = None

async def get_db():
    if AsyncSessionLocal is None:
        raise Exception("Database not configured")
    async with AsyncSessionLocal() as session:
        yield session

def get_session_factory():
    """Session factory for work that outlives a request (payment polling)"""
    if AsyncSessionLocal is None:
        raise Exception("Database not configured")
    return AsyncSessionLocal

def get_sync_engine():
    if sync_engine is None:
        raise Exception("Database not configured")
    return sync_engine

