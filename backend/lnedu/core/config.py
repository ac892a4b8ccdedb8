from pydantic import BaseModel
import os


def _csv(name: str, default: str = "") -> list[str]:
    return [v.strip() for v in os.getenv(name, default).split(",") if v.strip()]


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    ENV: str = os.getenv("ENV", "dev")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./dev.db")

    JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-change-me")
    JWT_REFRESH_SECRET: str = os.getenv("JWT_REFRESH_SECRET", os.getenv("JWT_SECRET", "dev-change-me"))
    JWT_ALG: str = os.getenv("JWT_ALG", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "10080"))  # 7 dias
    REFRESH_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_MINUTES", "43200"))  # 30 dias

    CORS_ORIGINS: list[str] = _csv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")

    REDIS_URL: str = os.getenv("REDIS_URL", "")
    CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "600"))

    # webhooks
    WEBHOOK_SECRET: str = os.getenv("WEBHOOK_SECRET", "")
    ASAAS_WEBHOOK_TOKEN: str = os.getenv("ASAAS_WEBHOOK_TOKEN", "")

    # gateway
    ASAAS_API_KEY: str = os.getenv("ASAAS_API_KEY", "")
    ASAAS_ENVIRONMENT: str = os.getenv("ASAAS_ENVIRONMENT", "sandbox")

    # anti-spam
    ANTI_SPAM_ENABLED: bool = _flag("ANTI_SPAM_ENABLED", "true")
    ANTI_SPAM_REDIS: bool = _flag("ANTI_SPAM_REDIS", "false")
    RATE_LIMIT_MAX: int = int(os.getenv("RATE_LIMIT_MAX", "5"))
    RATE_LIMIT_WINDOW: int = int(os.getenv("RATE_LIMIT_WINDOW", "900000"))  # ms, 15 min
    RATE_LIMIT_BLOCK_DURATION: int = int(os.getenv("RATE_LIMIT_BLOCK_DURATION", "3600000"))  # ms, 1 h
    HONEYPOT_FIELD_NAME: str = os.getenv("HONEYPOT_FIELD_NAME", "website")
    ANTI_SPAM_AUTOBLOCK_THRESHOLD: int = int(os.getenv("ANTI_SPAM_AUTOBLOCK_THRESHOLD", "5"))
    ANTI_SPAM_BLACKLIST: list[str] = _csv("ANTI_SPAM_BLACKLIST")

    # email
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "contato@lneducacional.com.br")
    ADMIN_EMAILS: list[str] = _csv("ADMIN_EMAILS", "contato@lneducacional.com.br")

    # links gerados para o cliente
    PUBLIC_DOWNLOAD_URL: str = os.getenv("PUBLIC_DOWNLOAD_URL", "https://download.lneducacional.com.br")
    BOLETO_BASE_URL: str = os.getenv("BOLETO_BASE_URL", "https://boleto.lneducacional.com.br")
    PAYMENT_REDIRECT_URL: str = os.getenv("PAYMENT_REDIRECT_URL", "https://payment.lneducacional.com.br/process")
    SITE_URL: str = os.getenv("SITE_URL", "https://lneducacional.com.br")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "")

settings = Settings()
