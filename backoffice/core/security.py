from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext

from backoffice.core.config import JWT_SECRET, JWT_ALGO, ACCESS_TOKEN_MINUTES

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(auth_id: str, session_id: str, minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": auth_id,
        "sid": session_id,
        "iat": now,
        "exp": now + timedelta(minutes=minutes or ACCESS_TOKEN_MINUTES),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def decode_access_token(token: str) -> Optional[dict]:
    """Claims of a well-formed, unexpired token; None otherwise."""
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.PyJWTError:
        return None

    if not claims.get("sub") or not claims.get("sid"):
        return None
    return claims
