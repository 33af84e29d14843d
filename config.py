import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./skillswap.db")
    AUTO_CREATE_TABLES = bool(data.get("AUTO_CREATE_TABLES", True))
    API_PREFIX = data.get("API_PREFIX", "")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))
    ENABLE_SENTRY = data.get("ENABLE_SENTRY", 0)
    DSN_SENTRY = data.get("DSN_SENTRY", "")
    SENTRY_ENVIRONMENT = data.get("SENTRY_ENVIRONMENT", "dev")

    # Authentication (identity is asserted by the upstream auth gateway)
    AUTH_DISABLED = bool(data.get("AUTH_DISABLED", False))
    USER_ID_HEADER = data.get("USER_ID_HEADER", "X-User-Id")
    ADMIN_TOKEN_HEADER = data.get("ADMIN_TOKEN_HEADER", "X-Admin-Token")
    ADMIN_API_TOKEN = data.get("ADMIN_API_TOKEN", "")

    # Payment gateway
    PAYMENT_GATEWAY_MODE = data.get("PAYMENT_GATEWAY_MODE", "sandbox")  # flutterwave | sandbox
    FLUTTERWAVE_BASE_URL = data.get("FLUTTERWAVE_BASE_URL", "https://api.flutterwave.com/v3")
    FLUTTERWAVE_SECRET_KEY = data.get("FLUTTERWAVE_SECRET_KEY", "")
    PAYMENT_GATEWAY_TIMEOUT_SECONDS = float(data.get("PAYMENT_GATEWAY_TIMEOUT_SECONDS", 15.0))
    PAYMENT_REDIRECT_URL = data.get("PAYMENT_REDIRECT_URL", "http://localhost:3000/payment/callback")
    DEFAULT_CURRENCY = data.get("DEFAULT_CURRENCY", "NGN")
    SUPPORTED_CURRENCIES = data.get("SUPPORTED_CURRENCIES", ["NGN", "USD", "GHS", "KES", "EUR", "GBP"])

    # Webhook reconciliation
    WEBHOOK_SIGNATURE_HEADER = data.get("WEBHOOK_SIGNATURE_HEADER", "verif-hash")
    WEBHOOK_SIGNATURE_MODE = data.get("WEBHOOK_SIGNATURE_MODE", "secret_hash")  # secret_hash | hmac_sha256
    WEBHOOK_SECRET_HASH = data.get("WEBHOOK_SECRET_HASH", "")
    WEBHOOK_MAX_RETRIES = int(data.get("WEBHOOK_MAX_RETRIES", 3))
    WEBHOOK_RETRY_BASE_DELAY_SECONDS = float(data.get("WEBHOOK_RETRY_BASE_DELAY_SECONDS", 1.0))

    # Subscription lifecycle
    SUBSCRIPTION_SCHEDULER_ENABLED = bool(data.get("SUBSCRIPTION_SCHEDULER_ENABLED", False))
    SUBSCRIPTION_SWEEP_INTERVAL_SECONDS = data.get("SUBSCRIPTION_SWEEP_INTERVAL_SECONDS", 86400)  # Daily
    RENEWAL_LOOKAHEAD_DAYS = data.get("RENEWAL_LOOKAHEAD_DAYS", 3)
    RENEWAL_CHARGE_MAX_RETRIES = int(data.get("RENEWAL_CHARGE_MAX_RETRIES", 2))

    # Ledger reconciliation
    RECONCILIATION_ENABLED = bool(data.get("RECONCILIATION_ENABLED", True))
    RECONCILIATION_INTERVAL_SECONDS = data.get("RECONCILIATION_INTERVAL_SECONDS", 86400)  # Daily
    STALE_PENDING_HOURS = data.get("STALE_PENDING_HOURS", 24)

    # Notification delivery collaborator (email/SMS)
    NOTIFICATION_WEBHOOK_URL = data.get("NOTIFICATION_WEBHOOK_URL", None)

    # Plan catalog cache
    CACHE_BACKEND = data.get("CACHE_BACKEND", "memory")  # redis | memory
    REDIS_URL = data.get("REDIS_URL", "redis://localhost:6379/0")
    PLAN_CACHE_TTL_SECONDS = data.get("PLAN_CACHE_TTL_SECONDS", 300)
