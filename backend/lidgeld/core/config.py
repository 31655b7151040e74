from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Lidgeld Ledenadministratie"
    DEBUG: bool = False
    ENV: str = "production"

    # Server
    PORT: int = 8000

    # Calendar dates (fee periods, imports) are interpreted in this zone
    TIMEZONE: str = "Europe/Brussels"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS string into a list of origins."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Bank statement imports
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    IMPORT_PREVIEW_ROWS: int = 10
    DEFAULT_IMPORT_CATEGORY: str = "Onbekend"

    # SEPA direct debit (pain.008) creditor details
    SEPA_CREDITOR_NAME: str = "VZW Moskee"
    SEPA_CREDITOR_IBAN: Optional[str] = None
    SEPA_CREDITOR_BIC: Optional[str] = None
    SEPA_CREDITOR_ID: Optional[str] = None  # Schuldeiser-ID, e.g. BE69ZZZ050D000000008
    SEPA_COLLECTION_DAYS: int = 5  # Days between batch creation and collection

    @property
    def sepa_creditor_configured(self) -> bool:
        """Check if all creditor fields required for a pain.008 file are set."""
        return bool(self.SEPA_CREDITOR_IBAN and self.SEPA_CREDITOR_ID)

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
