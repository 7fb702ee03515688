"""Configuration for the External Component Provisioning service."""
import os


def load_secret(env_var: str, default: str = "") -> str:
    """
    Load a secret from environment variable or Docker secrets file.

    Checks {env_var}_FILE first (Docker secrets pattern: /run/secrets/...),
    falls back to {env_var} environment variable.
    """
    file_path = os.getenv(f"{env_var}_FILE")
    if file_path:
        try:
            with open(file_path) as f:
                return f.read().strip()
        except OSError:
            pass
    return os.getenv(env_var, default) or default


class Settings:
    """Application settings from environment variables."""

    # Server settings
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8080"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Grafana
    GF_LOCATION: str = os.getenv("GF_LOCATION", "http://localhost")
    GF_ADMIN_USER: str = os.getenv("GF_SECURITY_ADMIN_USER", "admin")
    GF_ADMIN_PASSWORD: str = load_secret("GF_SECURITY_ADMIN_PASSWORD", "admin")

    # Provision service used to look up accounts and check access keys
    PROVISION_SERVICE: str = os.getenv("PROVISION_SERVICE", "http://api-provision:8070")

    # Access key enforcement and cache
    REQUIRE_ACCESS_KEY: bool = os.getenv("REQUIRE_ACCESS_KEY", "true").lower() == "true"
    ACCESS_CACHE_TTL: float = float(os.getenv("ACCESS_CACHE_TTL", "60"))
    ACCESS_CACHE_PURGE: float = float(os.getenv("ACCESS_CACHE_PURGE", "600"))
    REDIS_URL: str = os.getenv("REDIS_URL", "")

    # Outbound HTTP
    HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "30"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Service info
    SERVICE_NAME: str = "extp"
    VERSION: str = "1.0.0"


settings = Settings()
