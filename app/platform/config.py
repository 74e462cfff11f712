from pathlib import Path
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "SiteSense API"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = True
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: List[str] = ["*"]

    # ── Logging ─────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE: str = "sitesense.log"

    # ── Snapshots ───────────────────────────────
    SNAPSHOT_DIR: str = "snapshots"

    # ── Orchestration ───────────────────────────
    CRAWL_MAX_DEPTH: int = 2
    CRAWL_MAX_PAGES: int = 25
    AUDIT_PAGE_LIMIT: int = 10  # pages sent to performance/SEO and accessibility
    SECURITY_PAGE_LIMIT: int = 5  # security scans are slower, fewer pages
    PERFORMANCE_BATCH_SIZE: int = 3
    SECURITY_BATCH_SIZE: int = 2
    SECURITY_TIMEOUT_SECONDS: float = 180
    SECURITY_GRACE_SECONDS: float = 30  # stop, drain and alert fetch after the budget
    SECURITY_PASSIVE_ONLY: bool = False
    MAX_CONCURRENT_SCANS: int = 2
    MAX_PENDING_SCANS: int = 20

    # ── Audit adapters ──────────────────────────
    CHROMEDRIVER_PATH: Optional[str] = None
    PAGE_LOAD_TIMEOUT: int = 30
    LIGHTHOUSE_BINARY: str = "lighthouse"
    LIGHTHOUSE_TIMEOUT_SECONDS: float = 120
    AXE_SCRIPT_URL: str = "https://cdnjs.cloudflare.com/ajax/libs/axe-core/4.10.2/axe.min.js"
    ZAP_API_URL: str = "http://localhost:8080"
    ZAP_API_KEY: Optional[str] = None
    ZAP_POLL_INTERVAL_SECONDS: float = 5

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
