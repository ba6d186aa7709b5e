# dairy_ledger/config.py
import logging
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    POSTGRES_USER: str = "user"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "dairy_db"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"

    # Leave empty to build a Postgres URL from the parts above
    DATABASE_URL: Optional[str] = "sqlite:///./dairy_ledger.db"

    UPLOAD_DIR: str = "./shared_data"
    LOG_LEVEL: str = "INFO"
    UNKNOWN_BUYER_NAME: str = "Unknown Buyer"

    model_config = SettingsConfigDict(env_file=".env")

    def get_database_url(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"


def configure_logging(level: Optional[str] = None):
    """Sets up the root logger once for the API process and the prefect worker."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


settings = Settings()
