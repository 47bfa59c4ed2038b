from pydantic import BaseModel
import os


from dotenv import load_dotenv
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./esahayak.db")
    app_name: str = os.getenv("APP_NAME", "ESahayak")
    app_env: str = os.getenv("APP_ENV", "development")
    app_base_url: str = os.getenv("APP_BASE_URL", "http://localhost:8000").rstrip("/")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    smtp_server: str = os.getenv("SMTP_SERVER", "")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_user: str = os.getenv("SMTP_USER", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    mail_from: str = os.getenv("MAIL_FROM", "")
    mail_from_name: str = os.getenv("MAIL_FROM_NAME", "ESahayak")

    # Database-backed sessions, cookie carries the opaque token
    session_max_age_days: int = int(os.getenv("SESSION_MAX_AGE_DAYS", "30"))
    verify_token_exp_hours: int = int(os.getenv("VERIFY_TOKEN_EXP_HOURS", "24"))
    # Return the raw magic-link token from POST /api/auth/custom-verify (dev tooling)
    expose_verify_token: bool = _env_flag(
        "EXPOSE_VERIFY_TOKEN",
        "false" if os.getenv("APP_ENV", "development") == "production" else "true",
    )
    default_callback_url: str = os.getenv("DEFAULT_CALLBACK_URL", "/buyers")

    csv_max_rows: int = int(os.getenv("CSV_MAX_ROWS", "200"))

    # Rate limit budgets: (max requests, window in ms)
    api_rate_limit: int = int(os.getenv("API_RATE_LIMIT", "100"))
    api_rate_window_ms: int = int(os.getenv("API_RATE_WINDOW_MS", str(15 * 60 * 1000)))
    mutation_rate_limit: int = int(os.getenv("MUTATION_RATE_LIMIT", "10"))
    mutation_rate_window_ms: int = int(os.getenv("MUTATION_RATE_WINDOW_MS", str(60 * 1000)))
    import_rate_limit: int = int(os.getenv("IMPORT_RATE_LIMIT", "3"))
    import_rate_window_ms: int = int(os.getenv("IMPORT_RATE_WINDOW_MS", str(60 * 1000)))
    auth_rate_limit: int = int(os.getenv("AUTH_RATE_LIMIT", "5"))
    auth_rate_window_ms: int = int(os.getenv("AUTH_RATE_WINDOW_MS", str(15 * 60 * 1000)))

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def session_cookie_name(self) -> str:
        return "__Secure-session-token" if self.is_production else "session-token"

settings = Settings()
