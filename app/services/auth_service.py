from datetime import timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.models.user import User
from app.schemas.auth import TokenData
from app.config import settings
from app.errors import AuthenticationError, NotFoundError, ValidationError
from app.utils.timeutils import utcnow
import logging
import secrets

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds
)

GENERIC_RESET_MESSAGE = "If an account with that email exists, a password reset code has been sent"

class AuthService:

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        try:
            return pwd_context.verify(plain_password, hashed_password)
        except ValueError as e:
            logger.warning(f"Password verification failed: {str(e)}")
            return False

    @staticmethod
    def get_password_hash(password: str) -> str:
        return pwd_context.hash(password)

    @staticmethod
    def generate_temporary_password(length: int = 12) -> str:
        return secrets.token_urlsafe(length)[:length]

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
        user = AuthService.get_user_by_email(db, email)
        if not user or not user.is_active:
            return None
        if not AuthService.verify_password(password, user.password_hash):
            return None
        return user

    @staticmethod
    def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
        expire = utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
        to_encode = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "exp": expire
        }
        return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    @staticmethod
    def verify_token(token: str) -> TokenData:
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        except JWTError:
            raise AuthenticationError("Invalid token")
        user_id = payload.get("sub")
        if user_id is None:
            raise AuthenticationError("Invalid token")
        try:
            return TokenData(user_id=int(user_id), email=payload.get("email"), role=payload.get("role"))
        except ValueError:
            raise AuthenticationError("Invalid token")

    @staticmethod
    def login(db: Session, email: str, password: str) -> dict:
        user = AuthService.authenticate_user(db, email, password)
        if not user:
            logger.warning(f"Failed login attempt for {email}")
            raise AuthenticationError("Invalid credentials or inactive account")

        user.last_login = utcnow()
        db.commit()
        db.refresh(user)
        logger.info(f"User {user.id} logged in")
        return {"token": AuthService.create_access_token(user), "user": user}

    @staticmethod
    def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
        if not AuthService.verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")
        user.password_hash = AuthService.get_password_hash(new_password)
        db.commit()
        logger.info(f"Password changed for user {user.id}")

    @staticmethod
    def request_password_reset(db: Session, email: str) -> Optional[tuple]:
        """Store a fresh one-time code; returns (user, otp) or None for unknown accounts"""
        user = AuthService.get_user_by_email(db, email)
        if not user or not user.is_active:
            logger.info("Password reset requested for unknown or inactive account")
            return None

        otp = f"{secrets.randbelow(1_000_000):06d}"
        user.reset_otp = otp
        user.reset_otp_expires = utcnow() + timedelta(minutes=settings.otp_expire_minutes)
        db.commit()
        logger.info(f"Password reset code issued for user {user.id}")
        return user, otp

    @staticmethod
    def _user_with_valid_otp(db: Session, email: str, otp: str) -> User:
        user = AuthService.get_user_by_email(db, email)
        if not user:
            raise NotFoundError("User not found")
        if (
            not user.reset_otp
            or not secrets.compare_digest(user.reset_otp, otp.strip())
            or user.reset_otp_expires is None
            or user.reset_otp_expires < utcnow()
        ):
            raise ValidationError("Invalid or expired OTP")
        return user

    @staticmethod
    def verify_otp(db: Session, email: str, otp: str) -> None:
        AuthService._user_with_valid_otp(db, email, otp)

    @staticmethod
    def reset_password(db: Session, email: str, otp: str, new_password: str) -> None:
        user = AuthService._user_with_valid_otp(db, email, otp)
        user.password_hash = AuthService.get_password_hash(new_password)
        user.reset_otp = None
        user.reset_otp_expires = None
        db.commit()
        logger.info(f"Password reset for user {user.id}")

auth_service = AuthService()
