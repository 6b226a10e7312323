# JWT token utilities
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from pydantic import BaseModel
from config.settings import get_settings

settings = get_settings()

class TokenData(BaseModel):
    user_id: str
    email: Optional[str] = None

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token for a user id carried in the 'sub' claim"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({'exp': expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

def decode_access_token(token: str) -> Optional[TokenData]:
    """Decode and validate a JWT token; None when invalid, expired or missing 'sub'"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    user_id = payload.get('sub')
    if not user_id:
        return None
    return TokenData(user_id=user_id, email=payload.get('email'))
