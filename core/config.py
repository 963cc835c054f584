from decouple import config, Csv

class Settings:
    # Database Configuration
    DATABASE_URL: str = config("DATABASE_URL", default="sqlite:///./delivery.db")

    # Security Configuration
    SECRET_KEY: str = config("SECRET_KEY", default="your-secret-key-here-change-in-production")
    ALGORITHM: str = config("JWT_ALGORITHM", default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = config("ACCESS_TOKEN_EXPIRE_MINUTES", default=15, cast=int)
    REFRESH_TOKEN_EXPIRE_DAYS: int = config("REFRESH_TOKEN_EXPIRE_DAYS", default=7, cast=int)
    PASSWORD_HASH_ROUNDS: int = config("PASSWORD_HASH_ROUNDS", default=12, cast=int)

    # Backend service URLs (used by the gateway)
    AUTH_SERVICE_URL: str = config("AUTH_SERVICE_URL", default="http://localhost:3002")
    USER_SERVICE_URL: str = config("USER_SERVICE_URL", default="http://localhost:3002")
    ORDER_SERVICE_URL: str = config("ORDER_SERVICE_URL", default="http://localhost:3003")
    GEO_SERVICE_URL: str = config("GEO_SERVICE_URL", default="http://localhost:3004")
    GATEWAY_TIMEOUT_SECONDS: float = config("GATEWAY_TIMEOUT_SECONDS", default=30.0, cast=float)

    # Geo provider Configuration
    GOOGLE_MAPS_API_KEY: str = config("GOOGLE_MAPS_API_KEY", default="")
    GOOGLE_MAPS_BASE_URL: str = config("GOOGLE_MAPS_BASE_URL", default="https://maps.googleapis.com")
    GEO_PROVIDER_TIMEOUT_SECONDS: float = config("GEO_PROVIDER_TIMEOUT_SECONDS", default=10.0, cast=float)
    GEOCODE_CACHE_TTL_SECONDS: int = config("GEOCODE_CACHE_TTL_SECONDS", default=3600, cast=int)
    GEOCODE_CACHE_MAX_ENTRIES: int = config("GEOCODE_CACHE_MAX_ENTRIES", default=1000, cast=int)

    # Default map centre used when coordinates are missing or malformed (Paris)
    DEFAULT_LATITUDE: float = config("DEFAULT_LATITUDE", default=48.8566, cast=float)
    DEFAULT_LONGITUDE: float = config("DEFAULT_LONGITUDE", default=2.3522, cast=float)

    # Tracking Configuration
    ROUTE_RECALC_DEBOUNCE_SECONDS: float = config("ROUTE_RECALC_DEBOUNCE_SECONDS", default=2.0, cast=float)

    # Rate limiting
    RATE_LIMIT_CALLS: int = config("RATE_LIMIT_CALLS", default=100, cast=int)
    RATE_LIMIT_PERIOD: int = config("RATE_LIMIT_PERIOD", default=60, cast=int)
    LOGIN_RATE_LIMIT_CALLS: int = config("LOGIN_RATE_LIMIT_CALLS", default=5, cast=int)
    REGISTER_RATE_LIMIT_CALLS: int = config("REGISTER_RATE_LIMIT_CALLS", default=2, cast=int)
    AUTH_RATE_LIMIT_PERIOD: int = config("AUTH_RATE_LIMIT_PERIOD", default=60, cast=int)

    # Monitoring
    SLOW_REQUEST_THRESHOLD_MS: float = config("SLOW_REQUEST_THRESHOLD_MS", default=1000.0, cast=float)
    SENTRY_DSN: str = config("SENTRY_DSN", default="")
    SENTRY_TRACES_SAMPLE_RATE: float = config("SENTRY_TRACES_SAMPLE_RATE", default=1.0, cast=float)
    APP_VERSION: str = config("APP_VERSION", default="1.0.0")

    # CORS
    CORS_ORIGINS: list = config(
        "CORS_ORIGINS",
        default="http://localhost:3000,http://localhost:5173",
        cast=Csv()
    )

    # Environment
    ENVIRONMENT: str = config("ENVIRONMENT", default="development")
    DEBUG: bool = config("DEBUG", default=True, cast=bool)

    # Logging
    LOG_LEVEL: str = config("LOG_LEVEL", default="INFO")

settings = Settings()
