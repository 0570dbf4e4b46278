"""Accounts, password hashing and signed bearer tokens."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional, Tuple
from uuid import uuid4

from app.schemas import User, UserCreate, UserRole, UserUpdate
from datastore.tables import Database

logger = logging.getLogger(__name__)

_PBKDF2_ITERATIONS = 310_000


class AuthenticationError(Exception):
    """Raised for bad credentials and invalid or expired tokens."""


class DuplicateEmailError(ValueError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    sub: str
    name: str
    role: UserRole
    exp: int


def hash_password(password: str, salt_b64: Optional[str] = None) -> Tuple[str, str]:
    salt = base64.b64decode(salt_b64) if salt_b64 else secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ITERATIONS)
    return base64.b64encode(digest).decode("utf-8"), base64.b64encode(salt).decode("utf-8")


def verify_password(password: str, expected_hash: str, salt_b64: str) -> bool:
    computed, _ = hash_password(password, salt_b64)
    return hmac.compare_digest(computed, expected_hash)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


class TokenSigner:
    """HMAC-SHA256 signed tokens: ``base64url(payload).hexdigest``."""

    def __init__(self, secret: str, ttl_seconds: int) -> None:
        self._secret = secret.encode("utf-8")
        self.ttl_seconds = ttl_seconds

    def issue(self, user: User, now: Optional[float] = None) -> str:
        issued = time.time() if now is None else now
        payload = {
            "sub": user.id,
            "name": user.name,
            "role": user.role.value,
            "exp": int(issued) + self.ttl_seconds,
        }
        body = _b64encode(json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8"))
        return f"{body}.{self._sign(body)}"

    def verify(self, token: str, now: Optional[float] = None) -> TokenClaims:
        if not token or "." not in token:
            raise AuthenticationError("Invalid token.")
        body, digest = token.rsplit(".", 1)
        if not hmac.compare_digest(digest, self._sign(body)):
            raise AuthenticationError("Invalid token.")
        try:
            payload = json.loads(_b64decode(body))
            claims = TokenClaims(
                sub=str(payload["sub"]),
                name=str(payload.get("name", "")),
                role=UserRole(payload["role"]),
                exp=int(payload["exp"]),
            )
        except (binascii.Error, ValueError, KeyError, TypeError) as exc:
            raise AuthenticationError("Invalid token.") from exc
        current = time.time() if now is None else now
        if claims.exp <= current:
            raise AuthenticationError("Token expired.")
        return claims

    def _sign(self, body: str) -> str:
        return hmac.new(self._secret, body.encode("utf-8"), hashlib.sha256).hexdigest()


class AuthService:
    """Registration, login and user administration."""

    def __init__(self, database: Database, signer: TokenSigner) -> None:
        self.database = database
        self.signer = signer

    def register(self, name: str, email: str, password: str) -> User:
        """Self-service sign-up; new accounts always get the viewer role."""
        return self.create_user(
            UserCreate(name=name, email=email, password=password, role=UserRole.viewer)
        )

    def login(self, email: str, password: str) -> str:
        user = self.find_by_email(email)
        if user is None or not verify_password(password, user.password_hash, user.password_salt):
            logger.warning("Rejected login", extra={"email": _normalize_email(email)})
            raise AuthenticationError("Invalid credentials.")
        logger.info("User logged in", extra={"user_id": user.id})
        return self.signer.issue(user)

    def verify_token(self, token: str) -> TokenClaims:
        """Check the signature, then take name and role from the stored account."""
        claims = self.signer.verify(token)
        user = self.database.users.get_item(claims.sub)
        if user is None:
            raise AuthenticationError("Unknown user.")
        return replace(claims, name=user.name, role=user.role)

    def find_by_email(self, email: str) -> Optional[User]:
        wanted = _normalize_email(email)
        matches = self.database.users.scan(lambda user: user.email == wanted)
        return matches[0] if matches else None

    def list_users(self) -> list[User]:
        return sorted(self.database.users.scan(), key=lambda user: user.name.lower())

    def get_user(self, user_id: str) -> User:
        user = self.database.users.get_item(user_id)
        if user is None:
            raise KeyError(f"User {user_id!r} not found.")
        return user

    def create_user(self, payload: UserCreate) -> User:
        email = _normalize_email(payload.email)
        if self.find_by_email(email) is not None:
            raise DuplicateEmailError("Email already registered.")
        password_hash, salt = hash_password(payload.password)
        user = User(
            id=str(uuid4()),
            name=payload.name.strip(),
            email=email,
            role=payload.role,
            password_hash=password_hash,
            password_salt=salt,
            created_at=datetime.now(timezone.utc),
        )
        self.database.users.put_item(user)
        logger.info("User created", extra={"user_id": user.id, "status": user.role.value})
        return user

    def update_user(self, user_id: str, payload: UserUpdate) -> User:
        user = self.get_user(user_id)
        email = _normalize_email(payload.email)
        owner = self.find_by_email(email)
        if owner is not None and owner.id != user_id:
            raise DuplicateEmailError("Email already registered.")
        changes = {"name": payload.name.strip(), "email": email, "role": payload.role}
        if payload.password:
            changes["password_hash"], changes["password_salt"] = hash_password(payload.password)
        updated = user.model_copy(update=changes)
        self.database.users.put_item(updated)
        return updated

    def delete_user(self, user_id: str) -> None:
        if not self.database.users.delete_item(user_id):
            raise KeyError(f"User {user_id!r} not found.")
        logger.info("User deleted", extra={"user_id": user_id})

    def ensure_admin(self, email: str, password: str, name: str = "Administrator") -> User:
        """Create the bootstrap admin account unless the email is taken."""
        existing = self.find_by_email(email)
        if existing is not None:
            return existing
        return self.create_user(
            UserCreate(name=name, email=email, password=password, role=UserRole.admin)
        )


def _normalize_email(email: str) -> str:
    return email.strip().lower()
