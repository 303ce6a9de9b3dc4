from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from pathlib import Path
from typing import List, Optional

# Get the directory where config.py is located
BASE_DIR = Path(__file__).resolve().parent.parent

class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding='utf-8',
        extra='ignore'
    )

    database_url: str
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    admin_email: str
    admin_password: str

    # Outbound mail
    smtp_server: str = "localhost"
    smtp_port: int = 1025
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    mail_from: str = "noreply@example.com"
    emails_enabled: bool = True
    frontend_url: str = "http://localhost:3000"

    # Exam rules
    otp_expire_minutes: int = 10
    video_download_hours: int = 24
    default_grace_period_minutes: int = 5
    bcrypt_rounds: int = 12

    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

settings = Settings()
