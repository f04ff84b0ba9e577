from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import os


BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class Settings(BaseSettings):
    APP_NAME: str = "Cycle-Bees"
    DEBUG: bool = False

    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "data/cyclebees.db")

    @property
    def DATABASE_URL(self) -> str:
        # Always resolve path relative to backend directory, not current working directory
        db_path = self.DATABASE_PATH
        if not os.path.isabs(db_path):
            db_path = os.path.join(BACKEND_DIR, db_path)
        return f"sqlite:///{os.path.abspath(db_path)}"

    SECRET_KEY: str = os.getenv("SECRET_KEY", "cyclebees-dev-secret-change-me")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days
    REGISTRATION_TOKEN_EXPIRE_MINUTES: int = 30

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8081",
        "http://127.0.0.1:8081",
    ]

    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    MAX_UPLOAD_SIZE: int = 5 * 1024 * 1024  # 5MB, images
    MAX_VIDEO_SIZE: int = 10 * 1024 * 1024  # 10MB, repair videos

    @property
    def UPLOAD_DIR_ABS(self) -> str:
        """Get absolute path for upload directory."""
        upload_dir = self.UPLOAD_DIR
        if os.path.isabs(upload_dir):
            return upload_dir
        return os.path.join(BACKEND_DIR, upload_dir)

    # OTP login
    OTP_EXPIRE_MINUTES: int = 5
    OTP_MAX_ATTEMPTS: int = 5

    # Booking rules
    REQUEST_EXPIRY_MINUTES: int = 15  # window a pending request waits for admin approval
    PRICE_TOLERANCE: float = 0.01  # allowed drift between client and server totals (INR)

    # SMS configuration (via MessageBot API)
    SMS_ENABLED: bool = os.getenv("SMS_ENABLED", "false").lower() == "true"
    MESSAGEBOT_API_TOKEN: str = os.getenv("MESSAGEBOT_API_TOKEN", "")
    MESSAGEBOT_SENDER_ID: str = os.getenv("MESSAGEBOT_SENDER_ID", "")

    # Seeded by scripts/init_db.py
    DEFAULT_ADMIN_USERNAME: str = os.getenv("DEFAULT_ADMIN_USERNAME", "admin")
    DEFAULT_ADMIN_PASSWORD: str = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")

    HOST: str = "127.0.0.1"
    PORT: int = 3000

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"  # Ignore extra environment variables
    )


settings = Settings()
