from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies.dependencies import get_current_user
from app.errors import AppError
from app.schemas.auth import (
    UserLogin, User, ChangePasswordRequest,
    ForgotPasswordRequest, VerifyOtpRequest, ResetPasswordRequest
)
from app.services.auth_service import auth_service, GENERIC_RESET_MESSAGE
from app.models.user import User as UserModel
from app.utils.email import email_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])

@router.post("/login")
async def login_user(login_data: UserLogin, db: Session = Depends(get_db)):
    try:
        result = auth_service.login(db, login_data.email, login_data.password)
        return {
            "success": True,
            "message": "Login successful",
            "data": {
                "token": result["token"],
                "token_type": "bearer",
                "user": User.model_validate(result["user"])
            }
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Login error: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Login failed")

@router.get("/profile")
async def get_profile(current_user: UserModel = Depends(get_current_user)):
    return {"success": True, "data": User.model_validate(current_user)}

@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    auth_service.change_password(db, current_user, data.current_password, data.new_password)
    return {"success": True, "message": "Password changed successfully"}

@router.post("/forgot-password")
async def forgot_password(
    request: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    try:
        issued = auth_service.request_password_reset(db, request.email)
        if issued:
            user, otp = issued
            background_tasks.add_task(email_service.send_password_reset_otp, user.email, user.full_name, otp)
        # Same answer whether or not the account exists
        return {"success": True, "message": GENERIC_RESET_MESSAGE}
    except Exception as e:
        logger.error(f"Forgot password error: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to process request")

@router.post("/verify-otp")
async def verify_otp(data: VerifyOtpRequest, db: Session = Depends(get_db)):
    auth_service.verify_otp(db, data.email, data.otp)
    return {"success": True, "message": "OTP verified successfully"}

@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, db: Session = Depends(get_db)):
    auth_service.reset_password(db, data.email, data.otp, data.new_password)
    return {"success": True, "message": "Password reset successfully"}
