import os
from dotenv import load_dotenv

load_dotenv()

_DEV_JWT_SECRET = "development-jwt-secret"


def _bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    environment: str = os.getenv("ENVIRONMENT", "development")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./socialhub.db")
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "text")  # text or json

    # Application session (JWT)
    jwt_secret: str = os.getenv("JWT_SECRET", _DEV_JWT_SECRET)
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
    refresh_token_expire_days: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
    cookie_secure: bool = _bool("COOKIE_SECURE", environment == "production")

    # Facebook Graph API
    facebook_app_id: str = os.getenv("FACEBOOK_APP_ID", "")
    facebook_app_secret: str = os.getenv("FACEBOOK_APP_SECRET", "")
    facebook_redirect_uri: str = os.getenv("FACEBOOK_REDIRECT_URI", "http://localhost:3001/api/facebook/callback")
    facebook_api_version: str = os.getenv("FACEBOOK_API_VERSION", "v19.0")
    facebook_scopes: str = os.getenv(
        "FACEBOOK_SCOPES", "public_profile,pages_show_list,pages_read_engagement,pages_manage_posts"
    )

    # LinkedIn
    linkedin_client_id: str = os.getenv("LINKEDIN_CLIENT_ID", "")
    linkedin_client_secret: str = os.getenv("LINKEDIN_CLIENT_SECRET", "")
    linkedin_redirect_uri: str = os.getenv("LINKEDIN_REDIRECT_URI", "http://localhost:3001/api/linkedin/callback")
    linkedin_scopes: str = os.getenv("LINKEDIN_SCOPES", "r_liteprofile r_emailaddress w_member_social")
    # When set, posts are authored by urn:li:organization:<id> instead of the member.
    linkedin_organization_id: str = os.getenv("LINKEDIN_ORGANIZATION_ID", "")

    oauth_state_ttl_seconds: int = int(os.getenv("OAUTH_STATE_TTL_SECONDS", "600"))
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
    fernet_key: str = os.getenv("FERNET_KEY", "")

    # Caption generation (Hugging Face inference API)
    hf_api_token: str = os.getenv("HF_API_TOKEN", "")
    caption_models: str = os.getenv("CAPTION_MODELS", "")

    # Outgoing email
    smtp_host: str = os.getenv("SMTP_HOST", "")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_user: str = os.getenv("SMTP_USER", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    smtp_from: str = os.getenv("SMTP_FROM", "noreply@example.com")
    smtp_starttls: bool = _bool("SMTP_STARTTLS", True)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()

if settings.is_production and settings.jwt_secret == _DEV_JWT_SECRET:
    raise RuntimeError("JWT_SECRET must be set in production")
