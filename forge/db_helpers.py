import logging
import os
from typing import Callable, Optional

from dotenv import load_dotenv
from google.auth import default as google_auth_default
from google.cloud import secretmanager
from google.oauth2 import service_account
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

logger = logging.getLogger("forge_backend")

# --- Configuration ---
PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT", "your-project-id")

DATABASE_URL        = os.getenv("DATABASE_URL", "")
DB_HOST             = os.environ.get("DB_HOST", "localhost")
DB_PORT             = int(os.environ.get("DB_PORT", "5432"))
DB_NAME             = os.environ.get("DB_NAME", "forge")
DB_USER             = os.environ.get("DB_USER", "postgres")
DB_PASSWORD         = os.environ.get("DB_PASSWORD")
# Secret Manager secret holding the forge pool's Postgres password
DB_SECRET_ID        = os.environ.get("DB_SECRET_ID")
DB_SECRET_VERSION   = os.environ.get("DB_SECRET_VERSION", "latest")


def _build_creds():
    # explicit service account key file first, then ambient credentials (Cloud Run, gcloud)
    key_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    scopes = ["https://www.googleapis.com/auth/cloud-platform"]
    if key_path and os.path.exists(key_path):
        return service_account.Credentials.from_service_account_file(key_path, scopes=scopes)
    creds, _ = google_auth_default(scopes=scopes)
    return creds


def get_db_password() -> str:
    """
    Password for the seed pool database: DB_PASSWORD if set, otherwise the
    DB_SECRET_ID secret from Secret Manager, fetched once per process.
    """
    global DB_PASSWORD

    if DB_PASSWORD:
        return DB_PASSWORD

    if DB_SECRET_ID:
        client = secretmanager.SecretManagerServiceClient(credentials=_build_creds())
        name = client.secret_version_path(PROJECT_ID, DB_SECRET_ID, DB_SECRET_VERSION)
        logger.info("[DB] Reading forge DB password from secret %s (version %s)", DB_SECRET_ID, DB_SECRET_VERSION)
        resp = client.access_secret_version(request={"name": name})
        DB_PASSWORD = resp.payload.data.decode("utf-8")
        return DB_PASSWORD

    raise RuntimeError("Forge DB password missing: set DB_PASSWORD or DB_SECRET_ID")


def _redact(url: str) -> str:
    if "@" not in url or "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    creds, host = rest.rsplit("@", 1)
    user = creds.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


def get_db_engine(url: Optional[str] = None) -> Engine:
    """
    Build the engine for the seed pool / style tables.

    An explicit url (or DATABASE_URL in the .env file) wins; otherwise the
    Postgres url is assembled from the DB_* variables, pulling the password
    from Secret Manager when DB_PASSWORD is not set.
    """
    url = url or DATABASE_URL
    if url:
        logger.info("[DB] Using DATABASE_URL: %s", _redact(url))
        if url.startswith("sqlite"):
            # threads share the file; writers wait on the sqlite lock instead of failing
            return create_engine(
                url,
                future=True,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        return create_engine(url, future=True, pool_pre_ping=True)

    password = get_db_password()
    url = f"postgresql+pg8000://{DB_USER}:{password}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    logger.info("[DB] Connecting to Postgres URL: %s", _redact(url))

    # pg8000 supports 'timeout' in seconds
    return create_engine(
        url,
        future=True,
        pool_pre_ping=True,
        connect_args={"timeout": 10},  # fail in 10s instead of hanging forever
    )


def create_session_factory(engine: Optional[Engine] = None) -> Callable[[], Session]:
    engine = engine or get_db_engine()
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
        future=True,
    )
