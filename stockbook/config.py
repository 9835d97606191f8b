from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Stockbook"
    DATABASE_URL: str = "sqlite:///./stockbook.db"

    # Auth
    SECRET_KEY: str = "change-me-in-production"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 168
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "admin"

    # Listing / bulk limits
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100
    MAX_BULK_IDS: int = 100

    # Change log listing
    CHANGE_LOG_DEFAULT_LIMIT: int = 20
    CHANGE_LOG_MAX_LIMIT: int = 100

    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env"}


settings = Settings()
