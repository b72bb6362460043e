"""
Password hashing and JWT token utilities
"""

import secrets
import string
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

import bcrypt
from jose import JWTError, jwt
from passlib.context import CryptContext

from config import settings
from app.core.error_handling import AuthFailed

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

# Bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72
CLOCK_SKEW_SECONDS = 60


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token"""
    alphabet = string.ascii_letters + string.digits
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def _truncate_for_bcrypt(password: str) -> str:
    password_bytes = password.encode('utf-8')
    if len(password_bytes) <= BCRYPT_MAX_BYTES:
        return password
    password_bytes = password_bytes[:BCRYPT_MAX_BYTES]
    # Drop a trailing partial UTF-8 sequence
    while password_bytes and (password_bytes[-1] & 0xC0) == 0x80:
        password_bytes = password_bytes[:-1]
    return password_bytes.decode('utf-8', errors='ignore')


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    return pwd_context.hash(_truncate_for_bcrypt(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        return bcrypt.checkpw(
            _truncate_for_bcrypt(plain_password).encode('utf-8'),
            hashed_password.encode('utf-8'),
        )
    except ValueError:
        # Malformed hash
        logger.warning("Stored password hash could not be parsed")
        return False


def _encode_token(data: dict, token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({
        "exp": int((now + expires_delta).timestamp()),
        "iat": int(now.timestamp()),
        "type": token_type,
        "jti": generate_secure_token(16)
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    return _encode_token(
        data,
        "access",
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token"""
    return _encode_token(data, "refresh", timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def verify_token(token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
    """
    Verify and decode a JWT token
    
    Expiry is checked manually with a 60-second leeway to tolerate clock
    drift between client and server.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={
                "verify_signature": True,
                "verify_exp": False,
                "verify_iat": False,
                "require_exp": False,
                "require_iat": False,
            }
        )
        
        current_timestamp = int(datetime.now(timezone.utc).timestamp())
        
        exp = payload.get("exp")
        if exp is not None and current_timestamp > (exp + CLOCK_SKEW_SECONDS):
            raise JWTError("Token has expired")
        
        iat = payload.get("iat")
        if iat is not None and (iat - CLOCK_SKEW_SECONDS) > current_timestamp:
            raise JWTError("Token issued in the future")
        
        if payload.get("type") not in ["access", "refresh"]:
            raise JWTError("Invalid token type")
        if expected_type and payload.get("type") != expected_type:
            raise JWTError(f"Expected {expected_type} token")
        
        return payload
        
    except JWTError as e:
        raise AuthFailed(f"Could not validate credentials: {str(e)}")
