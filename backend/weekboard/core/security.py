import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from weekboard.core.config import settings


class SecurityService:
    @staticmethod
    def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token whose subject is the user id"""
        now = datetime.now(timezone.utc)
        if expires_delta:
            expire = now + expires_delta
        else:
            expire = now + timedelta(hours=settings.JWT_ACCESS_TOKEN_EXPIRE_HOURS)

        payload = {
            "sub": str(user_id),
            "exp": expire,
            "iat": now,
            "type": "access"
        }
        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> Optional[Dict[str, Any]]:
        """Decode and validate a JWT token"""
        try:
            payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None
        if payload.get("type") != "access":
            return None
        return payload
