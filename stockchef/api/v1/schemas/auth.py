"""Auth schemas."""
from pydantic import BaseModel, EmailStr, Field


class SignupRequest(BaseModel):
    """Signup request; user_id is generated by the database."""
    email: EmailStr = Field(..., description="Email (unique)")
    username: str = Field(..., min_length=2, max_length=50, description="Username (unique)")
    password: str = Field(..., min_length=6, description="Password")
    nickname: str | None = Field(None, max_length=50, description="Display name")


class SignupResponse(BaseModel):
    success: bool
    message: str
    user_id: int | None = None


class LoginRequest(BaseModel):
    email: EmailStr = Field(..., description="Email")
    password: str = Field(..., description="Password")


class LoginResponse(BaseModel):
    success: bool
    message: str
    user_id: int | None = None
    username: str | None = None


class LogoutResponse(BaseModel):
    success: bool
    message: str


class SessionInfoResponse(BaseModel):
    authenticated: bool
    user_id: int | None = None
