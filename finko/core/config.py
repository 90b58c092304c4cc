from pydantic_settings import BaseSettings
from pydantic import Field
import os


class Config(BaseSettings):
    # Database Configuration
    db_url: str = Field(default="sqlite+aiosqlite:///./finko.db", alias="DB_URL")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Auth
    jwt_secret: str = Field(default="", alias="JWT_SECRET")

    # Google / Gmail Configuration
    google_client_id: str = Field(default="", alias="GOOGLE_CLIENT_ID")
    google_client_secret: str = Field(default="", alias="GOOGLE_CLIENT_SECRET")
    gmail_auth_redirect_uri: str = Field(default="", alias="GMAIL_AUTH_REDIRECT_URI")
    gmail_pubsub_topic: str = Field(default="", alias="GMAIL_PUBSUB_TOPIC")

    # Where the OAuth callback sends the browser back to
    frontend_url: str = Field(default="http://localhost:5173", alias="FRONTEND_URL")
    mobile_redirect_url: str = Field(default="", alias="MOBILE_REDIRECT_URL")

    # Shared secret for the watch renewal cron
    cron_secret: str = Field(default="", alias="CRON_SECRET")

    # LLM (Language Model) Configuration
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_model_name: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL_NAME")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", alias="OPENAI_BASE_URL"
    )

    # Banco de Chile Configuration
    bancochile_user_email: str = Field(default="", alias="BANCOCHILE_USER_EMAIL")
    bancochile_api_url: str = Field(
        default="https://gw.apistore.bancochile.cl/banco-chile/sandbox/v1/api-store/notificaciones/movimientos",
        alias="BANCOCHILE_API_URL",
    )
    bancochile_client_id: str = Field(default="", alias="BANCOCHILE_CLIENT_ID")
    bancochile_client_secret: str = Field(default="", alias="BANCOCHILE_CLIENT_SECRET")

    is_production: bool = os.getenv("ENVIRONMENT", "development").lower() == "production"

    # Path to .env file (for loading env vars)
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Instantiate the settings
config = Config()
