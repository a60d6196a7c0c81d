import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from blog_api.config import Settings
from blog_api.errors import Forbidden, InvalidCredentials, Unauthenticated
from blog_api.repository import Repository
from blog_api.schemas import Identity

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TTL = timedelta(hours=1)
BCRYPT_ROUNDS = 12

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)
_bearer = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plaintext password."""
    return _pwd_context.hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a stored hash."""
    return _pwd_context.verify(password, password_hash)


# PUBLIC_INTERFACE
def authenticate_user(repository: Repository, username: str, password: str) -> str:
    """
    Check a username/password pair against the stored hash.

    Unknown users and wrong passwords raise the same InvalidCredentials, and
    unknown users still pay for a hash check.
    """
    password_hash = repository.get_password_hash(username)
    if password_hash is None:
        _pwd_context.dummy_verify()
        logger.warning("Login failed for unknown user")
        raise InvalidCredentials()
    if not verify_password(password, password_hash):
        logger.warning("Login failed for user %r", username)
        raise InvalidCredentials()
    return username


# PUBLIC_INTERFACE
def register_user(repository: Repository, username: str, password: str) -> int:
    """Hash the password and store a new user. Duplicate names raise Conflict."""
    user_id = repository.create_user(username, hash_password(password))
    logger.info("Created user %r", username)
    return user_id


# PUBLIC_INTERFACE
def create_access_token(username: str, settings: Settings, now: Optional[datetime] = None) -> str:
    """Create a JWT access token that expires one hour after ``now``."""
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": username,
        "username": username,
        "iat": issued_at,
        "exp": issued_at + ACCESS_TOKEN_TTL,
    }
    return jwt.encode(payload, settings.access_token_secret, algorithm=settings.jwt_algorithm)


# PUBLIC_INTERFACE
def decode_access_token(token: str, settings: Settings) -> Identity:
    """Validate signature and expiry; raise Forbidden otherwise."""
    try:
        payload = jwt.decode(token, settings.access_token_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise Forbidden("Token has expired")
    except JWTError:
        raise Forbidden("Invalid token")

    username = payload.get("username")
    if not username:
        raise Forbidden("Invalid token payload")
    return Identity(
        username=username,
        issued_at=_timestamp(payload.get("iat")),
        expires_at=_timestamp(payload.get("exp")),
    )


# PUBLIC_INTERFACE
def introspect_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Report whether a token is valid. Invalid tokens are not an error here."""
    try:
        identity = decode_access_token(token, settings)
    except Forbidden as exc:
        logger.info("Token introspection rejected token: %s", exc.message)
        return {"valid": False}
    return {"valid": True, "identity": identity}


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


# PUBLIC_INTERFACE
def get_settings(request: Request) -> Settings:
    """Dependency returning the settings built at startup."""
    return request.app.state.settings


# PUBLIC_INTERFACE
def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> Identity:
    """Dependency admitting only requests with a valid bearer token."""
    if credentials is None:
        raise Unauthenticated()
    try:
        return decode_access_token(credentials.credentials, settings)
    except Forbidden as exc:
        logger.warning("Rejected bearer token: %s", exc.message)
        raise


# PUBLIC_INTERFACE
def require_user_creation_access(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> Optional[Identity]:
    """Dependency guarding user creation unless open creation is configured."""
    if settings.allow_open_user_creation:
        return None
    return get_current_identity(credentials, settings)


# PUBLIC_INTERFACE
def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> Optional[Identity]:
    """Identity for public routes; a missing or bad token means anonymous."""
    if credentials is None:
        return None
    try:
        return decode_access_token(credentials.credentials, settings)
    except Forbidden:
        return None
