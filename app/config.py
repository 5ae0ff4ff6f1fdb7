from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "SOSStock"
    DATABASE_URL: str = "sqlite:///./sosstock.db"

    # Auth
    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72
    PASSWORD_RESET_EXPIRE_MINUTES: int = 30

    # First admin account, created on startup when the profiles table is empty
    DEFAULT_ADMIN_EMAIL: str = "admin@sosstock.local"
    DEFAULT_ADMIN_PASSWORD: str = "sosstock"

    # Base URL for links sent to users (password reset)
    BASE_URL: str = "http://localhost:8000"

    # Order update callbacks (comma-separated)
    WEBHOOK_URLS: str = ""

    # Listing limits
    MOVEMENTS_PAGE_LIMIT: int = 100
    LOCATION_PREVIEW_LIMIT: int = 10

    # Batches expiring within this many days show up in the near-expiry report
    NEAR_EXPIRY_DAYS: int = 30

    model_config = {"env_file": ".env"}


settings = Settings()
