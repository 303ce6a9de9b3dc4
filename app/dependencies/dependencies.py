from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from app.database import get_db
from app.errors import AuthenticationError
from app.models.user import User, UserRole
from app.services.auth_service import auth_service
import logging

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token to an active user"""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Access token required")
    try:
        token_data = auth_service.verify_token(credentials.credentials)
    except AuthenticationError as e:
        raise _unauthorized(e.message)

    user = db.query(User).filter(User.id == token_data.user_id).first()
    if not user or not user.is_active:
        raise _unauthorized("Invalid or inactive user")
    return user

def require_roles(*roles: UserRole):
    """Dependency factory that lets only the given roles through"""
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            logger.warning(f"User {current_user.id} ({current_user.role.value}) denied, needs {[r.value for r in roles]}")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user
    return role_checker

get_current_admin = require_roles(UserRole.ADMIN)
get_current_staff = require_roles(UserRole.ADMIN, UserRole.TEACHER)
get_current_student = require_roles(UserRole.STUDENT)
