"""Central environment-driven settings shared by the payments and ledger apps.

Each process loads this once at startup. Deployment-specific behavior is
controlled by environment variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "unknown-service"
    log_level: str = "INFO"
    database_dsn: str
    api_key: str
    razorpay_key_id: str = ""
    razorpay_key_secret: str
    razorpay_api_url: str = "https://api.razorpay.com/v1"
    gateway_timeout_seconds: float = 5.0
    default_currency: str = "INR"
    free_order_prefix: str = "dummy_"
    ledger_max_attempts: int = 5
    ledger_retry_base_delay_seconds: float = 0.05
    email_api_url: str = "https://api.brevo.com/v3/smtp/email"
    email_api_key: str = ""
    sender_email: str = "noreply@learnpay.local"
    sender_name: str = "LearnPay"
    site_url: str = "http://localhost:3000"
    email_timeout_seconds: float = 10.0
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
