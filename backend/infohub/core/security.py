from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
import bcrypt
import hashlib
import hmac
from fastapi import HTTPException, Request, status
import secrets

from infohub.core.config import settings


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password"""
    # Bcrypt has a 72 byte limit - truncate password if necessary
    password_bytes = plain_password.encode('utf-8')[:72]
    return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))


def get_password_hash(password: str) -> str:
    """Hash password with configurable rounds (BCRYPT_ROUNDS in .env)"""
    password_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def _encode(to_encode: Dict[str, Any], expire: datetime, token_type: str) -> str:
    to_encode.update({"exp": expire, "type": token_type})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    return _encode(data.copy(), expire, "access")


def create_refresh_token(data: Dict[str, Any]) -> str:
    """Create JWT refresh token"""
    expire = datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode(data.copy(), expire, "refresh")


def create_password_reset_token(user_id: str, email: str) -> str:
    """Create short-lived password reset token"""
    expire = datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
    return _encode({"sub": user_id, "email": email}, expire, "password_reset")


def decode_token(token: str) -> Dict[str, Any]:
    """Decode JWT token"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def token_subject(token: str) -> Optional[str]:
    """`sub` of a valid access token, or None; never raises"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload.get("sub")


def hash_token(token: str) -> str:
    """SHA-256 digest used to store one-time tokens"""
    return hashlib.sha256(token.encode()).hexdigest()


def extract_token(request: Request) -> Optional[str]:
    """
    Get the bearer token for a request.

    The Authorization header wins; browser sessions fall back to the auth cookie.
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(settings.AUTH_COOKIE_NAME) or None


def generate_api_key() -> str:
    """Generate secure API key"""
    return f"sih_{secrets.token_urlsafe(32)}"


def verify_internal_api_key(api_key: Optional[str]) -> bool:
    """Constant-time check of an X-API-Key value against configured internal keys"""
    if not api_key:
        return False
    return any(hmac.compare_digest(api_key, key) for key in settings.INTERNAL_API_KEYS)
