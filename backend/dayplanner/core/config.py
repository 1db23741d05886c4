import logging
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

class Settings(BaseSettings):
    """
    Application settings.
    """
    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra="ignore")

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Day Itinerary API"

    # CORS Settings
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Stripe Settings
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    CHECKOUT_PRICE_CENTS: int = 100  # $1
    CHECKOUT_CURRENCY: str = "usd"
    FRONTEND_URL: str = "http://localhost:3000"

    # LLM Settings
    GOOGLE_API_KEY: str = ""
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.7
    GENERATION_TIMEOUT_SECONDS: float = 90.0

    # Email Settings
    GMAIL_SENDER_EMAIL: str = ""
    GMAIL_APP_PASSWORD: str = ""
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 465
    DELIVERY_TIMEOUT_SECONDS: float = 60.0
    SMTP_TIMEOUT_SECONDS: float = 30.0

    # Renderer Settings
    RENDER_TIMEOUT_SECONDS: float = 60.0
    RENDER_CHROMIUM_SANDBOX: bool = True

    # Fulfillment Settings
    STAGE_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_DELAY_SECONDS: float = 1.0
    INTAKE_TTL_SECONDS: int = 60 * 60 * 24  # 1 day, 0 disables expiry

    # Exposes the ad-hoc generation/render/delivery endpoints
    ENABLE_DIAGNOSTICS: bool = False

    @property
    def stripe_configured(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY)

    @property
    def llm_configured(self) -> bool:
        return bool(self.GOOGLE_API_KEY)

    @property
    def email_configured(self) -> bool:
        return bool(self.GMAIL_SENDER_EMAIL and self.GMAIL_APP_PASSWORD)

# Create settings instance
settings = Settings()

logger = logging.getLogger("dayplanner")


def log_settings_warnings(current: Settings) -> None:
    """
    Warns about missing provider credentials.
    The service still starts so the health endpoint can report what is missing.
    """
    if not current.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY is not set. Checkout creation will fail.")
    if not current.STRIPE_WEBHOOK_SECRET:
        logger.warning("STRIPE_WEBHOOK_SECRET is not set. Payment webhooks will be rejected.")
    if not current.GOOGLE_API_KEY:
        logger.warning("GOOGLE_API_KEY is not set. Every itinerary will use the fallback plan.")
    if not current.email_configured:
        logger.warning("Gmail credentials are not set. Itinerary delivery will fail.")
