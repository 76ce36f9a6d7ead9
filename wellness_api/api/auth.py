from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from wellness_api.config import RESET_PASSWORD_URL
from wellness_api.database.connection import get_db
from wellness_api.database.models import User
from wellness_api.errors import AuthenticationError
from wellness_api.integrations.credentials import create_access_token, decode_access_token
from wellness_api.integrations.notifier import get_notifier
from wellness_api.schemas import (
    ForgotPasswordRequest, ResetPasswordRequest, UserLogin, UserRegister,
)
from wellness_api.services import auth_service, user_service
from wellness_api.services.access_policy import Principal

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])
security = HTTPBearer(auto_error=False)

# ==================== DEPENDENCY: Get Current User ====================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get current authenticated user
    Use this in protected routes: current_user: User = Depends(get_current_user)
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authorized to access this route")

    user_id = decode_access_token(credentials.credentials)
    user = db.get(User, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return user


async def get_principal(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Principal:
    """The current user as a policy principal"""
    return user_service.principal_for(db, current_user)


def token_response(user: User) -> dict:
    return {
        "success": True,
        "token": create_access_token(user),
        "user": user.to_dict(),
    }

# ==================== API ENDPOINTS ====================

@router.post("/register", status_code=201)
async def register(request: UserRegister, db: Session = Depends(get_db)):
    """Create an account (role is always ``user``) and log it in"""
    user = user_service.register(
        db,
        name=request.name,
        email=request.email,
        password=request.password,
        phone=request.phone,
        address=request.address,
    )
    return token_response(user)


@router.post("/login")
async def login(request: UserLogin, db: Session = Depends(get_db)):
    user = user_service.login(db, request.email, request.password)
    return token_response(user)


@router.post("/forgotpassword")
async def forgot_password(
    request: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier)
):
    """Same response whether or not the email has an account"""
    auth_service.forgot_password(db, request.email, notifier, RESET_PASSWORD_URL)
    return {"success": True, "data": "Email sent"}


@router.put("/resetpassword/{resettoken}")
async def reset_password(
    resettoken: str,
    request: ResetPasswordRequest,
    db: Session = Depends(get_db)
):
    user = auth_service.reset_password(db, resettoken, request.password)
    return token_response(user)
