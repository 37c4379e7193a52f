from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.auth.schemas import TokenResponse, UserCreate, UserLogin, UserResponse
from app.core.config import settings
from app.core.database import get_db
from app.core.logger import audit_log, logger
from app.core.security import create_access_token, get_password_hash, mask_email, verify_password

router = APIRouter()


def _issue_token(response: Response, user: User) -> TokenResponse:
    """Creates an access token for the user and sets it as an httponly cookie."""
    access_token = create_access_token(
        data={"sub": user.id, "name": user.name},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        expires=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return TokenResponse(access_token=access_token, name=user.name)


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(response: Response, user_in: UserCreate, db: Session = Depends(get_db)) -> TokenResponse:
    if db.query(User).filter(User.email == user_in.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        name=user_in.name,
        email=user_in.email,
        hashed_password=get_password_hash(user_in.password)
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"User registered: {mask_email(user.email)}")
    audit_log(action="user_register", user=user.id, resource="users")

    # Auto-login after registration
    return _issue_token(response, user)


@router.post("/login", response_model=TokenResponse)
def login(response: Response, user_in: UserLogin, db: Session = Depends(get_db)) -> TokenResponse:
    user = db.query(User).filter(User.email == user_in.email).first()
    if not user or not verify_password(user_in.password, user.hashed_password):
        logger.info(f"Failed login attempt: {mask_email(user_in.email)}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return _issue_token(response, user)


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("access_token")
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> User:
    return current_user
