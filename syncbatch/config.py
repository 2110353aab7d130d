from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    chunk_size: int
    max_chunk_retries: int
    retry_backoff_seconds: float
    inbox_dir: str
    archive_dir: str
    poll_interval_minutes: int


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "syncbatch"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./syncbatch.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        chunk_size=int(os.getenv("CHUNK_SIZE", "100")),
        max_chunk_retries=int(os.getenv("MAX_CHUNK_RETRIES", "0")),
        retry_backoff_seconds=float(os.getenv("RETRY_BACKOFF_SECONDS", "1")),
        inbox_dir=os.getenv("INBOX_DIR", "./data/inbox"),
        archive_dir=os.getenv("ARCHIVE_DIR", "./data/archive"),
        poll_interval_minutes=int(os.getenv("POLL_INTERVAL_MINUTES", "15")),
    )
