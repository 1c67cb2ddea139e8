from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Gradebook Engine"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./gradebook.db"
    TEST_DATABASE_URL: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Open-ended grading backend
    GRADING_API_URL: str = "http://localhost:54321/functions/v1/evaluate-open-ended"
    GRADING_API_KEY: Optional[str] = None
    GRADING_TIMEOUT_SECONDS: float = 30.0
    GRADING_MAX_RETRIES: int = 2
    GRADING_RETRY_DELAY_SECONDS: float = 0.5
    GRADING_CONCURRENCY: int = 5

    # Analytics
    INTERVENTION_SCORE_THRESHOLD: float = 70.0
    INTERVENTION_TIME_THRESHOLD: float = 60.0
    AT_RISK_LOW_SCORE_CUTOFF: float = 60.0
    AT_RISK_LOW_SCORE_THRESHOLD: int = 0
    AT_RISK_INCOMPLETE_THRESHOLD: int = 2
    TREND_STABLE_BAND: float = 5.0

    class Config:
        env_file = ".env"

settings = Settings()
