"""
RiseOra - Authentication Router
Handles user registration, login, session verification, and the letter profile.
"""
from uuid import uuid4
from datetime import datetime
from typing import Optional
import logging
import re

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import UserDB
from ..auth import hash_password, verify_password, create_access_token, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    username: str
    password: str

    @field_validator('password')
    @classmethod
    def validate_password_strength(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters')
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    message: str


class ProfileUpdateRequest(BaseModel):
    """Sender details printed on dispute letters. Only provided fields change."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[str] = None  # ISO format: YYYY-MM-DD
    ssn_last_4: Optional[str] = None

    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None  # 2-letter state code
    zip_code: Optional[str] = None

    @field_validator('state')
    @classmethod
    def validate_state(cls, v):
        if v is not None:
            if not re.match(r'^[A-Za-z]{2}$', v):
                raise ValueError('Invalid state code')
            return v.upper()
        return v

    @field_validator('ssn_last_4')
    @classmethod
    def validate_ssn(cls, v):
        if v is not None:
            if not re.match(r'^\d{4}$', v):
                raise ValueError('SSN last 4 must be exactly 4 digits')
        return v

    @field_validator('zip_code')
    @classmethod
    def validate_zip(cls, v):
        if v is not None:
            if not re.match(r'^\d{5}(-\d{4})?$', v):
                raise ValueError('Invalid ZIP code format (use 12345 or 12345-6789)')
        return v


class UserResponse(BaseModel):
    id: str
    email: str
    username: str
    role: str = "user"
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    ssn_last_4: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


def _user_response(user: UserDB) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        role=user.role or "user",
        first_name=user.first_name,
        last_name=user.last_name,
        date_of_birth=user.date_of_birth.isoformat() if user.date_of_birth else None,
        ssn_last_4=user.ssn_last_4,
        street_address=user.street_address,
        city=user.city,
        state=user.state,
        zip_code=user.zip_code,
    )


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new user account.
    """
    existing_email = db.query(UserDB).filter(UserDB.email == request.email).first()
    if existing_email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    existing_username = db.query(UserDB).filter(UserDB.username == request.username).first()
    if existing_username:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already taken"
        )

    user = UserDB(
        id=str(uuid4()),
        email=request.email,
        username=request.username,
        password_hash=hash_password(request.password)
    )

    db.add(user)
    db.commit()

    logger.info(f"User registered: {request.email}")
    return MessageResponse(message="User created successfully")


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Authenticate user and return JWT token.
    """
    user = db.query(UserDB).filter(UserDB.email == request.email).first()

    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(user.id, user.email, user.role or "user")

    logger.info(f"User logged in: {request.email}")
    return TokenResponse(access_token=access_token)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: UserDB = Depends(get_current_user)):
    """
    Get current authenticated user info.
    """
    return _user_response(current_user)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update the sender details used on generated letters.
    """
    updates = request.model_dump(exclude_none=True)

    if "date_of_birth" in updates:
        try:
            updates["date_of_birth"] = datetime.strptime(updates["date_of_birth"], "%Y-%m-%d").date()
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid date format. Use YYYY-MM-DD"
            )

    for name, value in updates.items():
        setattr(current_user, name, value)

    db.commit()
    db.refresh(current_user)

    logger.info(f"Profile updated for user: {current_user.email}")
    return _user_response(current_user)
