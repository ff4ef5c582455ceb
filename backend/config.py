# backend/config.py

import os

from pydantic import BaseModel


def database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    if os.getenv("POSTGRES_HOST"):
        return (
            f"postgresql+psycopg2://"
            f"{os.getenv('POSTGRES_USER')}:{os.getenv('POSTGRES_PASSWORD')}@"
            f"{os.getenv('POSTGRES_HOST')}:{os.getenv('POSTGRES_PORT', '5432')}/"
            f"{os.getenv('POSTGRES_DB')}"
        )
    return "sqlite:///tradeledger.db"


class Settings(BaseModel):
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    database_url: str = "sqlite:///tradeledger.db"
    blob_backend: str = "local"          # "local", "drive" or "none"
    blob_root: str = "uploads"
    gdrive_credentials_path: str = "gdrive_sa.json"
    gdrive_folder_id: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
            database_url=database_url(),
            blob_backend=os.getenv("BLOB_BACKEND", "local").lower(),
            blob_root=os.getenv("BLOB_ROOT", "uploads"),
            gdrive_credentials_path=os.getenv("GDRIVE_CREDENTIALS_PATH", "gdrive_sa.json"),
            gdrive_folder_id=os.getenv("GDRIVE_FOLDER_ID", ""),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
