from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from alumnilink.auth import (
    authenticate_user,
    create_user_token,
    get_current_active_user,
    get_password_hash,
    verify_password,
)
from alumnilink.database import get_db
from alumnilink.errors import ValidationError
from alumnilink.models.user import User
from alumnilink.rate_limit import auth_rate_limit
from alumnilink.repositories.user_repository import UserRepository
from alumnilink.schemas.user import ChangePassword, UserCreate, UserLogin, user_profile

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(auth_rate_limit)])
async def register_user(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    user_repo = UserRepository(db)

    if not user_data.name.strip():
        raise ValidationError("Name is required")
    if await user_repo.exists_by_email(user_data.email):
        raise ValidationError("User already exists with this email address", code="USER_EXISTS")

    user = await user_repo.create(
        name=user_data.name,
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        role=user_data.role,
    )

    return {
        "message": "User registered successfully",
        "token": create_user_token(user),
        "user": user_profile(user),
    }


@router.post("/login", dependencies=[Depends(auth_rate_limit)])
async def login_user(user_data: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, user_data.email, user_data.password)
    if not user:
        raise ValidationError("Invalid email or password", code="INVALID_CREDENTIALS")

    user = await UserRepository(db).touch_last_login(user)

    return {
        "message": "Login successful",
        "token": create_user_token(user),
        "user": user_profile(user),
    }


@router.get("/me")
async def get_me(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    user_repo = UserRepository(db)
    return user_profile(
        current_user,
        follower_count=await user_repo.follower_count(current_user.id),
        following_count=await user_repo.following_count(current_user.id),
    )


@router.post("/refresh")
async def refresh_token(current_user: User = Depends(get_current_active_user)):
    return {"message": "Token refreshed successfully", "token": create_user_token(current_user)}


@router.post("/logout")
async def logout(current_user: User = Depends(get_current_active_user)):
    # Tokens are stateless; the client drops its copy
    return {"message": "Logout successful"}


@router.post("/change-password")
async def change_password(
    payload: ChangePassword,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise ValidationError("Current password is incorrect", code="INVALID_CREDENTIALS")

    await UserRepository(db).update(current_user, {"hashed_password": get_password_hash(payload.new_password)})
    return {"message": "Password changed successfully"}
