"""
Authentication endpoints.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response, Cookie
from typing import Optional
from pydantic import BaseModel
from app.core.auth import (
    authenticate_operator,
    create_session,
    delete_session,
    get_current_operator_dependency,
    SESSION_MAX_AGE,
)
from app.core.config import SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/login", response_model=dict)
async def login(request: LoginRequest, response: Response):
    """Login with the operator email and password."""
    if not authenticate_operator(request.email, request.password):
        logger.warning(f"Failed login attempt for {request.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    session_token = create_session(request.email)
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_token,
        httponly=True,
        secure=False,  # Set to True in production with HTTPS
        samesite="lax",
        max_age=int(SESSION_MAX_AGE.total_seconds()),
        path="/",
    )
    return {"success": True, "email": request.email}


@router.post("/logout", response_model=dict)
async def logout(
    response: Response,
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME)
):
    """Logout and clear session."""
    if session_token:
        delete_session(session_token)

    response.delete_cookie(key=SESSION_COOKIE_NAME, httponly=True, samesite="lax")
    return {"success": True, "message": "Logged out"}


@router.get("/me", response_model=dict)
async def get_me(operator: dict = Depends(get_current_operator_dependency)):
    """Get current operator info."""
    return {"email": operator.get("email")}
