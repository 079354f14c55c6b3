import base64
import binascii

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CALLBACK_PATH = "/auth/github/app/install/callback"
WEBHOOK_PATH = "/webhooks/github"


def _strip_trailing_slash(url: str) -> str:
    """Registered URLs must match GitHub's records exactly, so no trailing slash."""
    return url.strip().rstrip("/")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The webhook secret, the OAuth client secret and the install-state
    signing secret are three different keys. Settings refuse to load if
    the webhook secret is reused for either of the others.

    GITHUB_APP_PRIVATE_KEY is the base64-encoded PEM, which keeps the
    multi-line key usable in a single env var.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # User-facing redirects land here.
    frontend_base_url: str = "http://localhost:3000"

    # This service as GitHub reaches it (tunnel URL in local development).
    public_base_url: str = "http://localhost:8000"

    @field_validator("frontend_base_url", "public_base_url", mode="before")
    @classmethod
    def normalise_base_url(cls, v: str) -> str:
        return _strip_trailing_slash(v)

    # GitHub App identity
    github_app_id: str = ""
    github_app_slug: str = ""
    github_app_private_key: str = ""

    # Webhook HMAC key. Never the OAuth secret.
    github_webhook_secret: str = ""
    github_oauth_client_secret: str = ""

    # Install state tokens
    install_state_secret: str = ""
    install_state_ttl_seconds: int = 600

    # Delivery IDs are remembered this long for duplicate detection.
    webhook_delivery_ttl_seconds: int = 86400

    # Redis holds consumed state nonces and seen delivery IDs.
    redis_url: str = "redis://localhost:6379/0"

    # CORS: JSON list of allowed origins, e.g. ["https://app.example.com"].
    cors_origins: list[str] = ["*"]

    # Rate limiting, SlowAPI format, e.g. "20/minute".
    install_start_rate_limit: str = "20/minute"

    # Sentry: leave blank to disable error capture.
    sentry_dsn: str = ""

    # App
    debug: bool = True

    @model_validator(mode="after")
    def check_secrets_and_urls(self) -> "Settings":
        webhook_secret = self.github_webhook_secret
        if webhook_secret and webhook_secret in (
            self.github_oauth_client_secret,
            self.install_state_secret,
        ):
            raise ValueError(
                "GITHUB_WEBHOOK_SECRET must differ from GITHUB_OAUTH_CLIENT_SECRET "
                "and INSTALL_STATE_SECRET"
            )

        if not self.debug:
            for name in ("public_base_url", "frontend_base_url"):
                if not getattr(self, name).startswith("https://"):
                    raise ValueError(f"{name.upper()} must use https:// when DEBUG is off")

        if self.install_state_ttl_seconds <= 0:
            raise ValueError("INSTALL_STATE_TTL_SECONDS must be positive")

        return self

    @property
    def github_private_key_pem(self) -> str:
        """Decode the base64 private key into PEM text."""
        if not self.github_app_private_key:
            return ""
        try:
            return base64.b64decode(self.github_app_private_key, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ValueError("GITHUB_APP_PRIVATE_KEY is not valid base64-encoded PEM") from exc

    @property
    def callback_url(self) -> str:
        return f"{self.public_base_url}{CALLBACK_PATH}"

    @property
    def webhook_url(self) -> str:
        return f"{self.public_base_url}{WEBHOOK_PATH}"

    @property
    def installation_url(self) -> str:
        return f"https://github.com/apps/{self.github_app_slug}/installations/new"


def get_settings() -> Settings:
    return Settings()
