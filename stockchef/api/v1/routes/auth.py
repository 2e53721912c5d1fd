"""Auth routes (cookie session)"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from stockchef.api.dependencies import auth_rate_limit, require_authentication
from stockchef.api.v1.schemas.auth import (
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    SessionInfoResponse,
    SignupRequest,
    SignupResponse,
)
from stockchef.db.session import get_session
from stockchef.services import auth_service
from stockchef.utils.session import get_current_user_id, is_authenticated, login_user, logout_user

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/signup", response_model=SignupResponse, dependencies=[Depends(auth_rate_limit("signup"))])
async def signup(
    signup_data: SignupRequest,
    session: AsyncSession = Depends(get_session),
) -> SignupResponse:
    """
    Sign up

    - user_id is generated by the database
    - email and username must be unique
    """
    try:
        user = await auth_service.create_user(
            session=session,
            email=signup_data.email,
            username=signup_data.username,
            password=signup_data.password,
            nickname=signup_data.nickname,
        )
        await session.commit()
    except ValueError as e:
        await session.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    return SignupResponse(success=True, message="Signup complete.", user_id=user.user_id)


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(auth_rate_limit("login"))])
async def login(
    request: Request,
    login_data: LoginRequest,
    session: AsyncSession = Depends(get_session),
) -> LoginResponse:
    """
    Log in with email and password; stores user_id in the session cookie.
    """
    user = await auth_service.authenticate_user(
        session=session,
        email=login_data.email,
        password=login_data.password,
    )
    if not user:
        raise HTTPException(status_code=401, detail="Email or password does not match.")

    login_user(request, user_id=user.user_id, username=user.username)
    logger.info("Login: user_id=%s", user.user_id)

    return LoginResponse(success=True, message="Logged in", user_id=user.user_id, username=user.username)


@router.post("/logout", response_model=LogoutResponse)
async def logout(request: Request, user_id: int = Depends(require_authentication)) -> LogoutResponse:
    """Drop the session."""
    logout_user(request)
    return LogoutResponse(success=True, message="Logged out")


@router.get("/session", response_model=SessionInfoResponse)
async def get_session_info(request: Request) -> SessionInfoResponse:
    return SessionInfoResponse(
        authenticated=is_authenticated(request),
        user_id=get_current_user_id(request),
    )
