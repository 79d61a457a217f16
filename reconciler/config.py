import os


def _flag(name, default=""):
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


def _stripe_mode():
    mode = os.environ.get("STRIPE_MODE", "test").lower()
    # Default to test mode for safety
    return "production" if mode == "production" else "test"


def _stripe_secret_key():
    """Pick the secret key for the current mode, falling back to the legacy var."""
    if _stripe_mode() == "production":
        scoped = os.environ.get("STRIPE_SECRET_KEY_PRODUCTION")
    else:
        scoped = os.environ.get("STRIPE_SECRET_KEY_TEST")
    return scoped or os.environ.get("STRIPE_SECRET_KEY")


def _webhook_secrets():
    """Ordered candidate signing secrets: production, test, legacy.

    One deployment accepts events signed with any of them, so a Stripe
    account can deliver both live and test-mode events to the same URL.
    """
    secrets = []
    for name in (
        "STRIPE_WEBHOOK_SECRET_PRODUCTION",
        "STRIPE_WEBHOOK_SECRET_TEST",
        "STRIPE_WEBHOOK_SECRET",
    ):
        value = (os.environ.get(name) or "").strip()
        if value and value not in secrets:
            secrets.append(value)
    return secrets


class Config:
    """Base configuration. Shared across all environments."""

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    # --- Stripe ---
    STRIPE_MODE = _stripe_mode()
    STRIPE_SECRET_KEY = _stripe_secret_key()
    STRIPE_WEBHOOK_SECRETS = _webhook_secrets()

    # --- Storefront ---
    SITE_URL = os.environ.get("SITE_URL", "https://drinklonglife.com")

    # --- Feature flags ---
    REFERRALS_ENABLED = _flag("REFERRALS_ENABLED", "true")
    ANALYTICS_ENABLED = _flag("ANALYTICS_ENABLED", "true")

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        missing = []
        if not os.environ.get("DATABASE_URL"):
            missing.append("DATABASE_URL")
        if not _stripe_secret_key():
            missing.append("STRIPE_SECRET_KEY")
        if not _webhook_secrets():
            missing.append("STRIPE_WEBHOOK_SECRET")
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development."""

    DEBUG = True


class TestConfig(Config):
    """Testing: in-memory SQLite, fixed Stripe credentials."""

    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    STRIPE_MODE = "test"
    STRIPE_SECRET_KEY = "sk_test_fake"
    STRIPE_WEBHOOK_SECRETS = ["whsec_live_fake", "whsec_test_fake"]
    SITE_URL = "http://localhost:5000"
    REFERRALS_ENABLED = True
    ANALYTICS_ENABLED = True
    SERVER_NAME = "localhost"

    @staticmethod
    def validate():
        """Skip validation in test mode: everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
