'''
Holds all the configurations
'''
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """
    Manages application configuration using environment variables.
    """
    # Application Metadata
    APP_NAME: str = "AcademyOS Billing"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Balance ledger, tuition charges and lesson reconciliation for AcademyOS."
    TEST_MODE: bool = False

    # Database URL
    DATABASE_URL_PROD: str
    DATABASE_URL_TEST: str = "sqlite+aiosqlite:///:memory:"
    @property
    def database_url(self) -> str:
        """
        Dynamically returns the correct database URL based on the test_mode flag.
        """
        if self.TEST_MODE:
            return self.DATABASE_URL_TEST
        return self.DATABASE_URL_PROD

    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # CORS origins added on top of the defaults in main.py
    BACKEND_CORS_ORIGINS: list[str] = []

    # Billing settings
    DEFAULT_CURRENCY: str = "RUB"
    MINUTES_PER_ACADEMIC_HOUR: int = 40
    # how many later sessions a duration/status change may push paid minutes onto
    RECONCILE_LOOKAHEAD_SESSIONS: int = 5

    class Config:
        env_file = ".env" # automatically loads the .env

# Create a single, importable instance of the settings
settings = Settings()
