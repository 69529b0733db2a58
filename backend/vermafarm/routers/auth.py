from fastapi import APIRouter, Depends

from vermafarm.auth import AuthenticatedUser, create_access_token, require_authenticated_user
from vermafarm.models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UpdateDetailsRequest,
    UpdatePasswordRequest,
    UserProfile,
    UserResponse,
)
from vermafarm.routers.common import raise_store_http_error
from vermafarm.services.account_store import account_store
from vermafarm.services.errors import StoreError
from vermafarm.services.inventory_store import inventory_store

router = APIRouter(tags=["auth"])


def _token_response(profile: UserProfile, message: str) -> AuthResponse:
    token, expires_at = create_access_token(user_id=profile.id, user_type=profile.user_type, email=profile.email)
    return AuthResponse(message=message, token=token, expires_at=expires_at, user=profile)


@router.post("/register", status_code=201, response_model=AuthResponse)
def register(payload: RegisterRequest):
    try:
        profile = account_store.register(
            name=payload.name,
            email=payload.email,
            password=payload.password,
            phone=payload.phone,
            user_type=payload.user_type,
            location=payload.location,
        )
        if profile.user_type == "farmer":
            inventory_store.seed_defaults(profile.id)
        return _token_response(profile, "User registered successfully")
    except StoreError as exc:
        raise_store_http_error(exc)


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest):
    try:
        profile = account_store.authenticate(email=payload.email, password=payload.password)
        return _token_response(profile, "Login successful")
    except StoreError as exc:
        raise_store_http_error(exc)


@router.get("/me", response_model=UserResponse)
def me(user: AuthenticatedUser = Depends(require_authenticated_user)):
    try:
        return UserResponse(data=account_store.get_user(user.user_id))
    except StoreError as exc:
        raise_store_http_error(exc)


@router.put("/updatedetails", response_model=UserResponse)
def update_details(payload: UpdateDetailsRequest, user: AuthenticatedUser = Depends(require_authenticated_user)):
    try:
        profile = account_store.update_details(
            user.user_id,
            name=payload.name,
            phone=payload.phone,
            location=payload.location,
            service_charge_percent=payload.service_charge_percent,
        )
        return UserResponse(message="Profile updated successfully", data=profile)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.put("/updatepassword", response_model=AuthResponse)
def update_password(payload: UpdatePasswordRequest, user: AuthenticatedUser = Depends(require_authenticated_user)):
    try:
        profile = account_store.update_password(
            user.user_id,
            current_password=payload.current_password,
            new_password=payload.new_password,
        )
        return _token_response(profile, "Password updated successfully")
    except StoreError as exc:
        raise_store_http_error(exc)


@router.get("/logout", response_model=MessageResponse)
def logout(user: AuthenticatedUser = Depends(require_authenticated_user)):
    return MessageResponse(message="Logged out successfully")
