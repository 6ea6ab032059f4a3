import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from tripledger.core.config import settings
from tripledger.core.security import (
    TOKEN_COOKIE_NAME,
    create_access_token,
    get_current_user,
    hash_password,
    verify_password,
)
from tripledger.db.session import get_db
from tripledger.models.user import User
from tripledger.schemas.user import AuthResponse, LoginRequest, RegisterRequest, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


def _set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=TOKEN_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="strict",
        secure=settings.COOKIE_SECURE,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )


def _auth_response(user: User, response: Response) -> AuthResponse:
    token = create_access_token(user)
    _set_token_cookie(response, token)
    return AuthResponse(user=UserOut.model_validate(user), token=token)


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    if db.query(User).filter(User.username == payload.username).first():
        raise HTTPException(status_code=409, detail="Username already exists")

    email = str(payload.email) if payload.email else None
    if email and db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email already exists")

    user = User(
        username=payload.username,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=email,
        phone_number=payload.phone_number,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Registered user {user.username} (id={user.id})")
    return _auth_response(user, response)


@router.post("/auth/login", response_model=AuthResponse)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == payload.username).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return _auth_response(user, response)


@router.post("/auth/logout")
def logout(response: Response):
    response.delete_cookie(key=TOKEN_COOKIE_NAME, path="/")
    return {"message": "Logged out successfully"}


@router.get("/auth/user", response_model=UserOut)
@router.get("/user", response_model=UserOut)
def current_user(user: User = Depends(get_current_user)):
    return user
