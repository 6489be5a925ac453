import os
from typing import Callable

from google.cloud import secretmanager
from google.oauth2 import service_account
from google.auth import default as google_auth_default

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from hotspot_sync.settings import logger


class DbConnection:
    def __init__(self) -> None:
        # ---- env config ----
        self.PROJECT_ID   = os.getenv("GOOGLE_CLOUD_PROJECT", "")
        self.DB_HOST      = os.getenv("DB_HOST", "localhost")
        self.DB_PORT      = int(os.getenv("DB_PORT", "5432"))
        self.DB_NAME      = os.getenv("DB_NAME", "")
        self.DB_USER      = os.getenv("DB_USER", "")
        self.DB_PASSWORD  = os.getenv("DB_PASSWORD", "")
        self.DB_SECRET_ID = os.getenv("DB_SECRET_ID", "")

        # !###############################################
        # !   EITHER A DATABASE_URL IN THE .ENV FILE OR
        # !   POSTGRES BUILT FROM THE DB_* VARIABLES
        # !###############################################
        self.DATABASE_URL = os.getenv("DATABASE_URL", "")

        self._engine: Engine | None = None
        self._sessionmaker: sessionmaker | None = None

    # -------- GCP auth / creds --------
    def _build_creds(self):
        key_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        scopes = ["https://www.googleapis.com/auth/cloud-platform"]
        if key_path and os.path.exists(key_path):
            return service_account.Credentials.from_service_account_file(key_path, scopes=scopes)
        creds, _ = google_auth_default(scopes=scopes)
        return creds

    # -------- DB password (Secret Manager) --------
    def _get_db_password_lazy(self) -> str:
        if self.DB_PASSWORD:
            return self.DB_PASSWORD
        if self.DB_SECRET_ID:
            client = secretmanager.SecretManagerServiceClient(credentials=self._build_creds())
            name = client.secret_version_path(self.PROJECT_ID, self.DB_SECRET_ID, "latest")
            resp = client.access_secret_version(request={"name": name})
            self.DB_PASSWORD = resp.payload.data.decode("utf-8")
            return self.DB_PASSWORD
        raise RuntimeError("No DB_PASSWORD and no Secret Manager configured")

    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        pw = self._get_db_password_lazy()
        return f"postgresql+pg8000://{self.DB_USER}:{pw}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    def get_engine(self) -> Engine:
        if self._engine is None:
            url = self.database_url()
            if url.startswith("postgresql+pg8000"):
                logger.info(f"[DB] Connecting to Postgres at {self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}")
                # pg8000 supports 'timeout' in seconds
                self._engine = create_engine(
                    url,
                    future=True,
                    pool_pre_ping=True,
                    connect_args={"timeout": 10},
                )
            else:
                logger.info(f"[DB] Using DATABASE_URL: {url}")
                self._engine = create_engine(url, future=True)
        return self._engine

    # -------- SQLAlchemy Session factory --------
    def build_db_session_factory(self) -> Callable[[], Session]:
        if self._sessionmaker is None:
            self._sessionmaker = sessionmaker(
                bind=self.get_engine(),
                autoflush=False,
                autocommit=False,
                future=True,
            )

        def _factory() -> Session:
            return self._sessionmaker()

        return _factory
