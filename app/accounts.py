"""HTTP routes for authentication, user administration and contact."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas import (
    ContactAccepted,
    ContactMessage,
    ContactMessageIn,
    CreatedResponse,
    LoginRequest,
    OkResponse,
    RegisterRequest,
    TokenResponse,
    UserCreate,
    UserList,
    UserOut,
    UserRole,
    UserUpdate,
)
from app.security import get_container, require_role, require_user
from services.auth import AuthenticationError, DuplicateEmailError, TokenClaims
from services.container import ServiceContainer

router = APIRouter(prefix="/api")

_admin = require_role(UserRole.admin)


@router.post("/auth/register", response_model=CreatedResponse, summary="Self-service sign-up.")
def register(
    payload: RegisterRequest,
    container: ServiceContainer = Depends(get_container),
) -> CreatedResponse:
    try:
        user = container.auth.register(payload.name, payload.email, payload.password)
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return CreatedResponse(id=user.id)


@router.post("/auth/login", response_model=TokenResponse, summary="Exchange credentials for a token.")
def login(
    payload: LoginRequest,
    container: ServiceContainer = Depends(get_container),
) -> TokenResponse:
    try:
        token = container.auth.login(payload.email, payload.password)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    return TokenResponse(token=token)


@router.get("/users", response_model=UserList)
def list_users(
    _claims: TokenClaims = Depends(require_user),
    container: ServiceContainer = Depends(get_container),
) -> UserList:
    users = container.auth.list_users()
    return UserList(items=[UserOut.model_validate(user.model_dump()) for user in users])


@router.post("/users", response_model=CreatedResponse)
def create_user(
    payload: UserCreate,
    _claims: TokenClaims = Depends(_admin),
    container: ServiceContainer = Depends(get_container),
) -> CreatedResponse:
    try:
        user = container.auth.create_user(payload)
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return CreatedResponse(id=user.id)


@router.put("/users/{user_id}", response_model=OkResponse)
def update_user(
    user_id: str,
    payload: UserUpdate,
    _claims: TokenClaims = Depends(_admin),
    container: ServiceContainer = Depends(get_container),
) -> OkResponse:
    try:
        container.auth.update_user(user_id, payload)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.args[0]) from exc
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return OkResponse()


@router.delete("/users/{user_id}", response_model=OkResponse)
def delete_user(
    user_id: str,
    claims: TokenClaims = Depends(_admin),
    container: ServiceContainer = Depends(get_container),
) -> OkResponse:
    if user_id == claims.sub:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Administrators cannot delete their own account.",
        )
    try:
        container.auth.delete_user(user_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.args[0]) from exc
    return OkResponse()


@router.get("/contact", response_model=List[ContactMessage])
def list_contact_messages(
    _claims: TokenClaims = Depends(require_user),
    container: ServiceContainer = Depends(get_container),
) -> List[ContactMessage]:
    return container.contact.list_messages()


@router.post(
    "/contact",
    response_model=ContactAccepted,
    status_code=status.HTTP_201_CREATED,
    summary="Public contact form.",
)
def submit_contact_message(
    payload: ContactMessageIn,
    container: ServiceContainer = Depends(get_container),
) -> ContactAccepted:
    message = container.contact.submit(payload)
    return ContactAccepted(id=message.id)
